# -*- coding: utf-8 -*-
"""Site providers"""

from .amazon import AmazonProvider
from .base import BaseProvider
from .taobao import TaobaoProvider

__all__ = ["AmazonProvider", "BaseProvider", "TaobaoProvider"]
