"""
prize_portal
Prize disbursement portal: winning teams, leader bank details, treasury payouts.
"""

__version__ = "1.0.0"
