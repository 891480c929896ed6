# SPDX-License-Identifier: BUSL-1.1
"""Volume, bind and port declarations in the shapes the engine API expects."""

from collections.abc import Mapping


class CanonicalMountSet(dict):
    """Mount-point path -> {} mapping for the container "Volumes" field.

    The engine reports more mount points than were requested (image
    VOLUME declarations, anonymous volumes), so comparisons against
    reported state use matches(), a subset test, rather than ==.
    """

    def matches(self, other) -> bool:
        """True if every mount point here is present and equal in other."""
        if not isinstance(other, Mapping):
            return False
        return all(key in other and other[key] == val for key, val in self.items())


def _as_list(value) -> list:
    if value is None:
        return []
    if isinstance(value, (str, bytes, int, float)):
        return [value]
    return list(value)


def coerce_volumes(raw, binds: list = None) -> tuple:
    """Normalize a user volume declaration.

    Returns (mounts, appended_binds). Entries of a list that look like
    "host:container[:mode]" are bind specs: they are routed to
    appended_binds (skipping any already in binds) and the rest become
    mount points. Neither argument is mutated.
    """
    if raw is None or isinstance(raw, CanonicalMountSet):
        return raw, []
    if isinstance(raw, Mapping):
        return CanonicalMountSet(raw), []

    existing = [str(b) for b in _as_list(binds)]
    appended = []
    mount_points = []
    for entry in _as_list(raw):
        entry = str(entry)
        if len(entry.split(":")) > 1:
            if entry not in existing and entry not in appended:
                appended.append(entry)
        else:
            mount_points.append(entry)

    mounts = CanonicalMountSet()
    for path in mount_points:
        mounts[path] = {}
    return mounts, appended


# ── Port forwarding ──────────────────────────────────────────────────────

def _split_rule(rule) -> tuple:
    """Return (guest, host) for "guest" or "host:guest"; host may be None."""
    parts = str(rule).split(":")
    parts.reverse()
    guest = parts[0]
    host = parts[1] if len(parts) > 1 else None
    return guest, host


def exposed_ports(rules) -> dict:
    """ExposedPorts declaration for forward rules."""
    ports = {}
    for rule in _as_list(rules):
        guest, _host = _split_rule(rule)
        ports[f"{guest}/tcp"] = {}
    return ports


def port_bindings(rules) -> dict:
    """HostConfig.PortBindings for forward rules.

    A rule without a host port binds to "" so the engine picks one.
    """
    bindings = {}
    for rule in _as_list(rules):
        guest, host = _split_rule(rule)
        bindings[f"{guest}/tcp"] = [{"HostPort": host or ""}]
    return bindings
