"""Messagely: private text messaging between registered users."""
