"""HealthBridge alerting core.

Vital-sign threshold evaluation, emergency dispatch and the repositories and
HTTP surface around them. Domain logic lives in `healthbridge.domain` and
`healthbridge.services`, isolated from storage and transport details.
"""

__version__ = "0.3.0"
