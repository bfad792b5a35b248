# -*- coding: utf-8 -*-
"""Location: ./volleydash/__init__.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

volleydash - administrative services for a team-based volleyball statistics platform.
"""

__copyright__ = "Copyright 2025"
__license__ = "Apache 2.0"
__version__ = "0.4.0"
__description__ = "Super-admin and team dashboard services for volleyball statistics teams"
__packages__ = ["volleydash"]
