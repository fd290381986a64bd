"""
SLA Escalation Module
=====================

Bounded Context for Service Level Agreement enforcement.

Responsibilities:
- Define the escalation ladder and legal official transitions
- Load the SLA policy from YAML and hot-reload it on change
- Run the watchdog that advances overdue complaints, single-flight
- Attach best-effort advisories to escalations after they are committed
"""
