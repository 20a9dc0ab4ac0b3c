"""End-to-end scenarios through the public API of :mod:`confsubmit`."""
