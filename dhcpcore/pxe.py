"""PXE

Boot file selection for network booting clients

"""

import enum
import struct

from .error import BadLengthError

__all__ = ['ArchitectureType', 'CLIENT_SYSTEM_ARCHITECTURE_TYPE',
	'USER_CLASS_IDENTIFIER', 'parse_boot_file_map', 'client_architectures',
	'make_boot_file_getter']
__author__ = 'Tori Wolf <wiredwolf@wiredwolf.gg>'
# SPDX tag
# SPDX-License-Identifier: MIT
__license__ = 'MIT'

CLIENT_SYSTEM_ARCHITECTURE_TYPE = 93
USER_CLASS_IDENTIFIER = 77


class ArchitectureType(enum.IntEnum):
	INTEL_X86PC = 0
	NEC_PC98 = 1
	EFI_ITANIUM = 2
	DEC_ALPHA = 3
	ARC_X86 = 4
	INTEL_LEAN_CLIENT = 5
	EFI_IA32 = 6
	EFI_X86_64 = 7
	EFI_XSCALE = 8
	EFI_BC = 9


def parse_boot_file_map(mapping):
	"""Turn `0:bios/pxelinux.0,7:efi64/syslinux.efi` into a dict."""
	arch_to_boot = {}
	for pair in mapping.split(','):
		arch, sep, image = pair.partition(':')
		if not sep or not image:
			raise ValueError('expected ARCH:FILE, got %r' % pair)
		arch_to_boot[int(arch)] = image
	return arch_to_boot


def client_architectures(request):
	# NOTE(tori): option 93 is not in the option table, so it arrives as the
	# raw list of 16-bit architecture types from RFC 4578
	try:
		encoded = request.options.raw(CLIENT_SYSTEM_ARCHITECTURE_TYPE)
	except KeyError:
		return []
	if len(encoded) % 2:
		raise BadLengthError('client architecture list of %d bytes'
			% len(encoded))
	return [arch for arch, in struct.iter_unpack('!H', encoded)]


def make_boot_file_getter(mapping, default=None, ipxe_script='script.ipxe'):
	if isinstance(mapping, str):
		arch_to_boot = parse_boot_file_map(mapping)
	else:
		arch_to_boot = {int(arch): image for arch, image in mapping.items()}

	def boot_file(request, response):
		user_class = request.options.get(USER_CLASS_IDENTIFIER)
		if user_class == b'iPXE':
			return ipxe_script

		try:
			arches = client_architectures(request)
		except BadLengthError:
			return default

		for arch in arches:
			image = arch_to_boot.get(arch)
			if image is not None:
				return image

		return default

	return boot_file

# vim:set ft=python ts=4 sw=4 noet ai cc=80:
