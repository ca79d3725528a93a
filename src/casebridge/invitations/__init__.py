"""
Single-use onboarding invitations.
"""
