# lazy_farms/core/__init__.py
# SPDX-License-Identifier: Apache-2.0
