"""Unit tests for icecache.signature."""
from icecache.signature import HEADER_SIZE, ICE_MAGIC, is_ice_file


class TestIsIceFile:
    def test_valid_header(self):
        assert is_ice_file(ICE_MAGIC + b"payload")

    def test_header_only(self):
        assert is_ice_file(ICE_MAGIC)

    def test_wrong_magic(self):
        assert not is_ice_file(b"AFP\x00payload")

    def test_magic_not_at_offset_zero(self):
        assert not is_ice_file(b"\x00" + ICE_MAGIC)

    def test_lowercase_magic_rejected(self):
        assert not is_ice_file(b"ice\x00payload")

    def test_empty_buffer(self):
        assert not is_ice_file(b"")

    def test_every_short_buffer_rejected(self):
        # Prefixes of the real magic are still too short to be containers
        for n in range(HEADER_SIZE):
            assert not is_ice_file(ICE_MAGIC[:n])

    def test_bytearray_and_memoryview(self):
        assert is_ice_file(bytearray(ICE_MAGIC + b"x"))
        assert is_ice_file(memoryview(ICE_MAGIC + b"x"))

    def test_non_bytes_input_degrades_to_false(self):
        assert not is_ice_file(None)
        assert not is_ice_file("ICE\x00text")
