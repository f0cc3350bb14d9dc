# lazy_farms/services/__init__.py
# SPDX-License-Identifier: Apache-2.0
