#!/usr/bin/env python3
"""
Idle-Resume Training Trigger
============================
Thin entry-point. All logic lives in idle_resume.cli.

Usage:
    python3 run_trigger.py focus                  # user resumed; sweep if due
    python3 run_trigger.py hidden                 # user left; stamp activity
    python3 run_trigger.py sweep --agents a.json  # sweep now, bypassing the gate
"""

from idle_resume.cli import main

if __name__ == "__main__":
    main()
