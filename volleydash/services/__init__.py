# -*- coding: utf-8 -*-
"""Location: ./volleydash/services/__init__.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Services package.
Query, aggregation and mutation services operating on a database session.
"""
