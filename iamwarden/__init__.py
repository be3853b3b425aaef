"""
IAM Warden
Detects risky IAM policy, trust and credential configurations and plans
reviewable remediations.
"""

__version__ = '1.0.0'
