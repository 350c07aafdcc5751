"""LifeQuest: gamified life-management progression engine"""
__version__ = "0.1.0"
