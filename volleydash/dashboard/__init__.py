# -*- coding: utf-8 -*-
"""Location: ./volleydash/dashboard/__init__.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Dashboard view controllers.
Views own the queries of a screen and expose their state to a rendering layer.
"""

# First-Party
from volleydash.dashboard.admin_views import PlatformAnalyticsView, TeamManagementView, UserManagementView
from volleydash.dashboard.team_views import TeamDashboardView

__all__ = ["PlatformAnalyticsView", "TeamDashboardView", "TeamManagementView", "UserManagementView"]
