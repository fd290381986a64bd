"""
Triage Module
=============

Bounded Context for talking to the classification model.

Responsibilities:
- Classify a submitted complaint (image and/or text) within a time budget
- Normalize model output into the accepted category/severity vocabulary
- Produce one-sentence advisories for escalations that already happened

Nothing here decides whether a complaint is admitted or escalated; the
complaints and sla contexts own those decisions.
"""
