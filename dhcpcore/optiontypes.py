# SPDX-License-Identifier: MIT

__all__ = ['OptionSpec', 'Literal', 'Derived', 'OptionRegistry']

from collections import namedtuple

from .error import RegistryError
from .option_codecs import CodecError, ValueType, value_type_codec


class Literal:
	"""Default value used as-is."""
	__slots__ = ('value',)

	def __init__(self, value):
		self.value = value

	def resolve(self, view):
		return self.value

	def __repr__(self):
		return '%s(%r)' % (type(self).__name__, self.value)


class Derived:
	"""Default value computed from the configuration each time it is needed.

	`fn` is called with a read-only view of the configuration; returning
	`None` means the option has no value.
	"""
	__slots__ = ('fn',)

	def __init__(self, fn):
		if not callable(fn):
			raise TypeError('%r is not callable' % (fn,))
		self.fn = fn

	def resolve(self, view):
		return self.fn(view)

	def __repr__(self):
		return '%s(%s)' % (type(self).__name__,
			getattr(self.fn, '__name__', repr(self.fn)))


def as_default(value):
	if value is None or isinstance(value, (Literal, Derived)):
		return value
	return Literal(value)


_OptionSpec = namedtuple('OptionSpec',
	'code name value_type config_key default')


class OptionSpec(_OptionSpec):
	__slots__ = ()

	def __new__(cls, code, name, value_type, config_key=None, default=None):
		if code not in range(1, 255):
			raise RegistryError('option code must be in 1..254, not %r'
				% (code,))
		try:
			value_type = ValueType(value_type)
		except ValueError:
			raise RegistryError('unknown value type for option %d: %r'
				% (code, value_type)) from None
		return super().__new__(cls, code, name, value_type, config_key,
			as_default(default))

	def encode(self, value):
		return value_type_codec.encode(self.value_type, value)

	def decode(self, raw):
		return value_type_codec.decode(self.value_type, raw)


class OptionRegistry:
	"""Table of known options, keyed by code.

	Entries keep the order they were added in; that order is the order in
	which options are written out. Once frozen the registry cannot change,
	`extend()` makes a new one instead.
	"""

	def __init__(self, specs=(), labels=None):
		self._specs = {}
		self._order = {}
		self._by_key = {}
		self.labels = {}
		self.frozen = False
		for spec in specs:
			self.add(spec)
		if labels is not None:
			for code, mapping in labels.items():
				self.labels[code] = dict(mapping)

	def add(self, spec, labels=None):
		if self.frozen:
			raise RegistryError('registry is frozen, use extend() instead')
		if not isinstance(spec, OptionSpec):
			raise RegistryError('%r is not an OptionSpec' % (spec,))
		if spec.code in self._specs:
			raise RegistryError('option %d already registered as %r'
				% (spec.code, self._specs[spec.code].name))
		if spec.config_key is not None and spec.config_key in self._by_key:
			raise RegistryError('config key %r already used by option %d'
				% (spec.config_key, self._by_key[spec.config_key].code))

		self._specs[spec.code] = spec
		self._order[spec.code] = len(self._order)
		if spec.config_key is not None:
			self._by_key[spec.config_key] = spec
		if labels is not None:
			self.labels[spec.code] = dict(labels)

	def freeze(self):
		self.frozen = True
		return self

	def extend(self, *specs, labels=None):
		registry = type(self)(self, labels=self.labels)
		for spec in specs:
			registry.add(spec)
		if labels is not None:
			for code, mapping in labels.items():
				registry.labels[code] = dict(mapping)
		return registry.freeze()

	def __getitem__(self, code):
		return self._specs[code]

	def get(self, code, default=None):
		return self._specs.get(code, default)

	def __contains__(self, code):
		return code in self._specs

	def __iter__(self):
		return iter(self._specs.values())

	def __len__(self):
		return len(self._specs)

	def by_config_key(self, key):
		return self._by_key[key]

	def config_keys(self):
		return self._by_key.keys()

	def order(self, code):
		"""Sort key for writing options: table order, unknown codes last."""
		index = self._order.get(code)
		if index is None:
			return (1, code)
		return (0, index)

	def encode(self, code, value):
		spec = self._specs.get(code)
		if spec is None:
			if not isinstance(value, (bytes, bytearray)):
				raise CodecError('unknown option %d needs raw bytes, got %r'
					% (code, value))
			return bytes(value)
		return spec.encode(value)

	def decode(self, code, raw):
		spec = self._specs.get(code)
		if spec is None:
			return bytes(raw)
		return spec.decode(raw)

	def name(self, code):
		spec = self._specs.get(code)
		if spec is None:
			return 'option %d' % code
		return spec.name

	def describe(self, code, value):
		"""Human readable form of a decoded value, for logs only."""
		try:
			label = self.labels.get(code, {}).get(value)
		except TypeError:
			label = None
		if label is None:
			return '%s=%r' % (self.name(code), value)
		return '%s=%s' % (self.name(code), label)

	def __repr__(self):
		return '%s(%d options%s)' % (type(self).__name__, len(self),
			', frozen' if self.frozen else '')

# vim:set ft=python ts=4 sw=4 ai noet cc=80:
