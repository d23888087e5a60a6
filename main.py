"""
AR定位核心演示程序
以模拟定位源运行完整的采集流程，记录起点与目的地航点，并输出局部坐标与距离
"""

import sys
import signal
import logging
import argparse
from typing import Optional

import config
from arloc_core.errors import ArlocError
from arloc_core.proto import LocalOffset, WaypointLabel
from arloc_core.localization import WaypointStore
from arloc_core.acquisition import (
    AcquisitionConfig,
    AcquisitionState,
    AcquisitionStateMachine,
    SimulationSource,
)
from arloc_core.metrics import get_metrics

logger = logging.getLogger(__name__)


class SimulatedSession:
    """模拟会话：采集状态机 + 航点存储"""

    def __init__(self, tick_interval_s: float):
        self.tick_interval_s = tick_interval_s

        acquisition_config = AcquisitionConfig.from_dict(config.ACQUISITION_CONFIG)
        self.source = SimulationSource.from_config(config.SIMULATION_CONFIG)
        self.machine = AcquisitionStateMachine.simulated(self.source, acquisition_config)

        self.store = WaypointStore(origin_provider=self.machine.origin)
        self.machine.add_consumer(self.store.update_current)
        self.machine.add_listener(self._on_transition)

        # 设置信号处理
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, signum, frame):
        """信号处理函数"""
        logger.info(f"收到信号 {signum}，正在停止...")
        self.machine.cancel()

    def _on_transition(self, old_state: AcquisitionState, new_state: AcquisitionState):
        logger.info(f"状态: {self.machine.status().describe()}")

    def acquire(self, max_ticks: Optional[int]) -> bool:
        """运行采集流程直到就绪或终止"""
        state = self.machine.run_until_settled(
            max_ticks=max_ticks,
            tick_interval_s=self.tick_interval_s,
        )
        if state == AcquisitionState.READY:
            return True

        try:
            self.machine.raise_for_status()
        except ArlocError as e:
            logger.error(f"采集失败: {e.to_payload()}")
        return False

    def walk(self, east_m: float, north_m: float):
        """模拟设备移动并采集一次新定位"""
        self.source.move_to(LocalOffset(x=east_m, y=0.0, z=north_m))
        self.machine.step()

    def report(self):
        """输出航点局部坐标与距离"""
        for label in self.store.labels():
            waypoint = self.store.get(label)
            if not waypoint.has_offset:
                logger.warning(f"  {label:12s}: 无原点，无法计算局部坐标")
                continue
            offset = waypoint.offset
            logger.info(f"  {label:12s}: lat={waypoint.fix.latitude:.6f}, lon={waypoint.fix.longitude:.6f}, "
                        f"local=({offset.x:.2f}, {offset.y:.2f}, {offset.z:.2f}) m")

        vector = self.store.offset_between(WaypointLabel.STORED, WaypointLabel.DESTINATION)
        meters = self.store.distance_between(WaypointLabel.STORED, WaypointLabel.DESTINATION)
        logger.info(f"起点 -> 目的地: local=({vector.x:.2f}, {vector.y:.2f}, {vector.z:.2f}) m, "
                    f"大圆距离={meters:.2f} m")


def main() -> int:
    parser = argparse.ArgumentParser(description="AR定位核心演示（模拟定位源）")
    parser.add_argument("--debug", action="store_true", help="启用调试日志")
    parser.add_argument("--ticks", type=int, default=config.DEMO_CONFIG["max_ticks"],
                        help="采集最多运行的tick数")
    parser.add_argument("--tick-interval", type=float,
                        default=config.ACQUISITION_CONFIG["tick_interval_s"],
                        help="每tick时长（秒）")
    parser.add_argument("--walk-east", type=float, default=config.DEMO_CONFIG["walk_east_m"],
                        help="模拟向东移动距离（米）")
    parser.add_argument("--walk-north", type=float, default=config.DEMO_CONFIG["walk_north_m"],
                        help="模拟向北移动距离（米）")
    args = parser.parse_args()

    # 配置日志
    level = logging.DEBUG if args.debug else getattr(logging, config.LOGGING_CONFIG["level"])
    logging.basicConfig(level=level, format=config.LOGGING_CONFIG["format"])

    session = SimulatedSession(tick_interval_s=args.tick_interval)

    try:
        if not session.acquire(args.ticks):
            return 1

        session.store.store_current_as(WaypointLabel.STORED)
        session.walk(args.walk_east, args.walk_north)
        session.store.store_current_as(WaypointLabel.DESTINATION)
        session.report()
    except ArlocError as e:
        logger.error(f"航点处理失败: {e.to_payload()}")
        return 1
    finally:
        session.machine.shutdown()
        for line in get_metrics().summary_lines():
            logger.info(line)

    return 0


if __name__ == "__main__":
    sys.exit(main())
