"""Ambient services shared by every doccache component: errors, logging, settings."""
