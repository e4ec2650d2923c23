# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""sizegen: emit CachedSize methods for the types of a Go module."""
