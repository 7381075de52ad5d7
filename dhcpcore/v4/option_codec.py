# SPDX-License-Identifier: MIT

__all__ = ['OptionCodec']

from .message import DHCPMessage
from .rfc2132 import registry as rfc2132_registry


class OptionCodec:
	"""Encodes and decodes messages against one option registry.

	Decoding is eager: every option is run through its value type once so
	that a malformed option fails the whole datagram instead of surfacing
	later while a response is being built.
	"""

	def __init__(self, registry=None):
		if registry is None:
			registry = rfc2132_registry
		self.registry = registry

	def decode(self, data):
		message = DHCPMessage.decode(data, self.registry)
		message.options.decoded()
		return message

	def encode(self, message):
		return message.encode()

	def new_message(self, **fields):
		return DHCPMessage(registry=self.registry, **fields)

	def code(self, key_or_code):
		if isinstance(key_or_code, str):
			return self.registry.by_config_key(key_or_code).code
		return int(key_or_code)

	def resolve(self, key_or_code, config):
		if isinstance(key_or_code, str):
			key = key_or_code
		else:
			spec = self.registry.get(key_or_code)
			if spec is None or spec.config_key is None:
				return None
			key = spec.config_key
		return config.get(key)

	def fill_options(self, response, config, requested=(), forced=(),
		required=(), excluded=()):
		"""Set every wanted option that resolves to a value.

		Options already present on `response` are left alone; codes that
		resolve to None are left out. Returns the codes that were set.
		"""
		wanted = set()
		for group in (requested, forced, required):
			for item in group:
				try:
					wanted.add(self.code(item))
				except KeyError:
					continue
		wanted.difference_update(self.code(item) for item in excluded)

		added = []
		for spec in self.registry:
			if spec.code not in wanted or spec.code in response.options:
				continue
			value = self.resolve(spec.code, config)
			if value is None:
				continue
			response.options[spec.code] = value
			added.append(spec.code)
		return added

	def shed_options(self, message, limit, keep=()):
		"""Drop options, last in table order first, until `message` fits."""
		shed = []
		keep = set(keep)
		while len(self.encode(message)) > limit:
			candidates = [
				code
				for code in message.options.ordered()
				if code not in keep
			]
			if not candidates:
				break
			code = candidates[-1]
			del message.options[code]
			shed.append(code)
		return shed

# vim:set ft=python ts=4 sw=4 ai noet cc=80:
