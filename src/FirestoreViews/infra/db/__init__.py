"""View managers: one per database the views can be created in.

Imported lazily by callers so that only the chosen backend's client library
is loaded.
"""
