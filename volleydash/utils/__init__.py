# -*- coding: utf-8 -*-
"""Location: ./volleydash/utils/__init__.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Utility helpers shared by services and dashboard views.
"""
