"""
    ___         __        __                             __
   /   | __  __/ /_____  / /   ____  ____ _____  __  __/ /_
  / /| |/ / / / __/ __ \/ /   / __ \/ __ `/ __ \/ / / / __/
 / ___ / /_/ / /_/ /_/ / /___/ /_/ / /_/ / /_/ / /_/ / /_
/_/  |_\__,_/\__/\____/_____/\____/\__, /\____/\__,_/\__/
                                  /____/

AutoLogout Project - client-triggered session inactivity management.

A countdown observes inactivity, warns the user with a dialog before the
session ends, and lets the user keep the session alive or log out. The
server stays the single source of truth for the remaining session time, so
several tabs of one session reconcile without talking to each other.

License: Apache-2.0 License
"""

__version__ = "1.0.0"
