"""
swapengine: order lifecycle and liquidity aggregation core of the swap demo.
"""

__version__ = "4.0.3"
