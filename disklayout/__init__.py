"""Declarative disk layouts: GPT partitions, LUKS, LVM and ZFS."""

from disklayout.__version__ import __version__


__all__ = ["__version__"]
