"""Shared constants for berth.

Label names here are a contract with external tooling (reapers, `berth ps`,
other processes looking for reusable containers). Do not rename them.
"""

from __future__ import annotations

import uuid

# Reserved label namespace. User labels may not start with it.
LABEL_NAMESPACE = "io.berth"

# Present on every container berth creates.
MANAGED_LABEL = LABEL_NAMESPACE

# Identifies the creating process. Omitted for reusable containers.
SESSION_ID_LABEL = f"{LABEL_NAMESPACE}.session-id"

# Reuse fingerprint of the creation request.
HASH_LABEL = f"{LABEL_NAMESPACE}.hash"

# Checksum of files staged into the container.
COPIED_FILES_HASH_LABEL = f"{LABEL_NAMESPACE}.copied_files.hash"

# One id per interpreter process.
SESSION_ID = str(uuid.uuid4())

# Hostname containers use to reach the port-forwarding helper.
INTERNAL_HOST_HOSTNAME = "host.berth.internal"

# Port-readiness polling: fixed ceiling and interval.
PORT_WAIT_TIMEOUT_SECONDS = 5.0
PORT_WAIT_INTERVAL_SECONDS = 0.05

# Startup-check strategies give up after this long.
CONTAINER_RUNNING_TIMEOUT_SECONDS = 30.0

# How long stop() waits for log consumers to drain the remaining output.
LOG_FOLLOWER_JOIN_SECONDS = 1.0

# Network modes that never get a secondary network attached.
SPECIAL_NETWORK_MODES = frozenset({"none", "host"})

DEFAULT_SETTINGS_FILE = "~/.berth.yml"
SETTINGS_ENV_PREFIX = "BERTH_"
REUSE_ENV_VAR = f"{SETTINGS_ENV_PREFIX}REUSE_ENABLE"
