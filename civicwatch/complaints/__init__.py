"""
Complaints Module
=================

Bounded Context for the complaint record.

Responsibilities:
- Admit or reject a citizen submission
- Record how the classification decision was made
- Persist complaints with append-only audit and timeline logs
- Official actions (assign, status updates) and read-side queries
"""
