"""Customer onboarding back-office service."""
