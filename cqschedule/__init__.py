"""重邮课表：获取、缓存、按周查看课表，并同步到日历"""

__version__ = "1.0.0"
