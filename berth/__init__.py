# SPDX-License-Identifier: BUSL-1.1
"""berth - ephemeral Docker test environments for a test harness."""

__version__ = "0.1.0"
