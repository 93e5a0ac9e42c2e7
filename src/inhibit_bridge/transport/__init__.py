"""Bus transports exporting the idle-inhibit interface.

``transport.dbus_export`` needs dbus-python and is imported where it is used.
"""
