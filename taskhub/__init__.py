"""Task workflow and role-authorization core for the organisation dashboard."""
