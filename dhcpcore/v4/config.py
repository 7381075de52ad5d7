# SPDX-License-Identifier: MIT

__all__ = ['ConfigView', 'ServerConfig', 'ClientConfig']

from ipaddress import IPv4Address

from ..address_range import address_range
from ..error import ConfigError
from ..hardwaretype import parse_hardware_address, format_hardware_address
from ..option_codecs import CodecError
from .rfc2132 import registry as rfc2132_registry


class ConfigView:
	"""Read-only access to configuration values, option defaults included.

	This is what `Derived` defaults receive; `view('netmask')`,
	`view['netmask']` and `view.get('netmask')` all resolve the configured
	value first and fall back to the option's default.
	"""

	def __init__(self, values, registry):
		self._values = values
		self._registry = registry

	def get(self, key, default=None):
		value = self._values.get(key)
		if value is not None:
			return value
		try:
			spec = self._registry.by_config_key(key)
		except KeyError:
			return default
		if spec.default is None:
			return default
		value = spec.default.resolve(self)
		return default if value is None else value

	def __call__(self, key):
		return self.get(key)

	def __getitem__(self, key):
		value = self.get(key)
		if value is None:
			raise KeyError(key)
		return value

	def __contains__(self, key):
		return self.get(key) is not None


def _number(key, value, minimum=0):
	if isinstance(value, bool) or not isinstance(value, (int, float)):
		raise ConfigError('%s must be a number, not %r' % (key, value))
	if value <= minimum:
		raise ConfigError('%s must be greater than %r' % (key, minimum))
	return value


def _flag(key, value):
	if not isinstance(value, bool):
		raise ConfigError('%s must be true or false, not %r' % (key, value))
	return value


def _feature_list(key, value, registry):
	if isinstance(value, str):
		raise ConfigError('%s must be a list of names, not %r' % (key, value))
	features = list(value)
	for feature in features:
		try:
			registry.by_config_key(feature)
		except KeyError:
			raise ConfigError('%s: unknown option name %r'
				% (key, feature)) from None
	return features


class ServerConfig:
	SETTINGS = {
		'range': None,
		'force_options': (),
		'random_ip': False,
		'static': None,
		'boot_file': None,
		'offer_time': 60,
		'sweep_interval': 10,
	}

	def __init__(self, values=None, registry=None, **kwargs):
		if registry is None:
			registry = rfc2132_registry
		self.registry = registry
		values = {**(values or {}), **kwargs}

		for key in values:
			if key not in self.SETTINGS and key not in registry.config_keys():
				raise ConfigError('unknown configuration key: %r' % key)

		self.range = self._check_range(values.get('range'))
		self.force_options = _feature_list('force_options',
			values.get('force_options', ()), registry)
		self.random_ip = _flag('random_ip', values.get('random_ip', False))
		self.static = self._check_static(values.get('static') or {})
		self.boot_file = values.get('boot_file')
		if self.boot_file is not None and not callable(self.boot_file):
			raise ConfigError('boot_file must be callable, not %r'
				% (self.boot_file,))
		self.offer_time = _number('offer_time', values.get('offer_time', 60))
		self.sweep_interval = _number('sweep_interval',
			values.get('sweep_interval', 10))

		option_values = {
			key: value
			for key, value in values.items()
			if key in registry.config_keys() and value is not None
		}
		option_values['range'] = self.range
		self._values = option_values
		self._view = ConfigView(option_values, registry)

		self._check_options()

	@staticmethod
	def _check_range(value):
		if value is None:
			raise ConfigError('range is required')
		if isinstance(value, address_range):
			return value
		try:
			start, stop = value
			return address_range(start, stop)
		except (TypeError, ValueError) as e:
			raise ConfigError('invalid range %r (caused by %s)'
				% (value, e)) from None

	@staticmethod
	def _check_static(value):
		static = {}
		seen = {}
		try:
			items = value.items()
		except AttributeError:
			raise ConfigError('static must be a mapping of mac to ip, not %r'
				% (value,)) from None
		for mac, ip in items:
			try:
				mac = format_hardware_address(mac)
				ip = IPv4Address(ip)
			except (TypeError, ValueError) as e:
				raise ConfigError('invalid static binding %r -> %r (caused by'
					' %s)' % (mac, ip, e)) from None
			if ip in seen:
				raise ConfigError('static address %s bound to both %s and %s'
					% (ip, seen[ip], mac))
			seen[ip] = mac
			static[mac] = ip
		return static

	def _check_options(self):
		# NOTE(tori): every value, configured or default, is encoded once
		# here so that a badly shaped value stops the server at startup
		for spec in self.registry:
			if spec.config_key is None:
				continue
			try:
				value = self._view.get(spec.config_key)
			except (TypeError, ValueError) as e:
				raise ConfigError('default for %s could not be computed'
					' (caused by %s)' % (spec.config_key, e)) from None
			if value is None:
				continue
			try:
				spec.encode(value)
			except CodecError as e:
				raise ConfigError('%s: %s' % (spec.config_key, e)) from None

		for key in ('lease_time', 'renewal_time', 'rebinding_time'):
			value = self._view.get(key)
			if value is not None:
				_number(key, value)
		if self.max_message_size < 576:
			raise ConfigError('max_message_size must be at least 576')

	def view(self):
		return self._view

	def __getitem__(self, key):
		return self._view[key]

	def get(self, key, default=None):
		return self._view.get(key, default)

	@property
	def server(self):
		return IPv4Address(self._view['server'])

	@property
	def lease_time(self):
		return self._view['lease_time']

	@property
	def max_message_size(self):
		return self._view['max_message_size']


class ClientConfig:
	DEFAULT_FEATURES = ('netmask', 'router', 'dns', 'domain_name', 'broadcast',
		'lease_time', 'renewal_time', 'rebinding_time')

	def __init__(self, values=None, registry=None, **kwargs):
		if registry is None:
			registry = rfc2132_registry
		self.registry = registry
		values = {**(values or {}), **kwargs}

		known = {'mac', 'features', 'hostname', 'client_id', 'vendor_class',
			'initial_interval', 'max_interval', 'request_attempts',
			'restart_delay', 'release_on_close'}
		for key in values:
			if key not in known:
				raise ConfigError('unknown configuration key: %r' % key)

		if values.get('mac') is None:
			raise ConfigError('mac is required')
		try:
			self.mac = parse_hardware_address(values['mac'])
		except (TypeError, ValueError) as e:
			raise ConfigError(str(e)) from None

		self.features = _feature_list('features',
			values.get('features', self.DEFAULT_FEATURES), registry)
		self.hostname = values.get('hostname')
		self.vendor_class = values.get('vendor_class')
		for key in ('hostname', 'vendor_class'):
			value = getattr(self, key)
			if value is not None and (not isinstance(value, str) or not value):
				raise ConfigError('%s must be a non-empty string' % key)
		self.client_id = values.get('client_id')
		if self.client_id is not None:
			if not isinstance(self.client_id, (bytes, bytearray)) \
				or len(self.client_id) < 2:
				raise ConfigError('client_id must be at least 2 bytes')
			self.client_id = bytes(self.client_id)

		self.initial_interval = _number('initial_interval',
			values.get('initial_interval', 4))
		self.max_interval = _number('max_interval',
			values.get('max_interval', 64))
		if self.max_interval < self.initial_interval:
			raise ConfigError('max_interval is below initial_interval')
		self.request_attempts = _number('request_attempts',
			values.get('request_attempts', 4))
		self.restart_delay = values.get('restart_delay', 10)
		if self.restart_delay is not None:
			self.restart_delay = _number('restart_delay', self.restart_delay,
				minimum=-1)
		self.release_on_close = _flag('release_on_close',
			values.get('release_on_close', False))

	def requested_options(self):
		return [self.registry.by_config_key(key).code for key in self.features]

# vim:set ft=python ts=4 sw=4 ai noet cc=80:
