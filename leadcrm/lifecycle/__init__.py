"""
Follow-up lifecycle — overdue rules, transactional commands and the sweep.
"""
