# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Go declaration front end: module discovery, parsing and type resolution."""
