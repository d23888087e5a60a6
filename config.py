"""
AR定位核心配置文件
"""

# 采集状态机配置
ACQUISITION_CONFIG = {
    "requires_permissions": True,          # Android等平台需要运行时权限
    "permissions": ("camera", "fine_location"),
    "permission_wait_ticks": 10,           # 权限等待上限（tick）
    "positioning_wait_ticks": 30,          # 定位服务启动等待上限（tick，每tick约1秒）
    "desired_accuracy_m": 1.0,             # 期望精度（米）
    "update_distance_m": 1.0,              # 更新距离（米）
    "settle_ticks": 1,                     # 模拟模式下的稳定延迟（tick）
    "stale_fix_ticks": None,               # 定位数据不更新多少tick视为丢失（None为关闭）
    "tick_interval_s": 1.0,                # 每tick时长（秒）
}

# 模拟定位配置（编辑器/开发模式）
SIMULATION_CONFIG = {
    "lat": 37.7749,
    "lon": -122.4194,
    "alt": 16.0,
    "accuracy": 5.0,
}

# 演示配置
DEMO_CONFIG = {
    "max_ticks": 60,
    "walk_east_m": 25.0,
    "walk_north_m": 40.0,
}

# 日志配置
LOGGING_CONFIG = {
    "level": "INFO",
    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}
