# Copyright (C) 2024 OutlineHub Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""OutlineHub Server - organizations, invitations and outlines API."""
