import logging
import random

from rollnorm.core.domain.rolling import RollingSeries
from rollnorm.core.config import Config


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)


class Sample:
    def __init__(self, timestamp: int, value: float):
        self.timestamp = timestamp
        self.value = value


def main():
    rolling = RollingSeries.from_window([1.0, 2.0, 3.0])
    # The latest value is at index 0.
    assert rolling[0] == 3.0
    assert rolling[1] == 2.0
    assert rolling[2] == 1.0
    assert rolling.curr() == rolling[0]

    logging.info("The most recent value is %s.", rolling.curr())
    logging.info("The mean is %s.", rolling.mean())
    logging.info("The variance is %s.", rolling.var())
    logging.info("The standard deviation is %s.", rolling.stdev())

    # Inserting evicts the oldest value and updates the stats in O(1).
    rolling.insert(3.0)
    assert rolling[0] == 3.0
    assert rolling[1] == 3.0
    assert rolling[2] == 2.0

    logging.info("The new mean is %s.", rolling.mean())
    logging.info("The new variance is %s.", rolling.var())
    logging.info("The new standard deviation is %s.", rolling.stdev())
    logging.info("The new z-score is %s.", rolling.norm())

    cfg = Config("./config.yaml")
    queue = cfg.stats_queue()
    for t in range(200):
        queue.put(Sample(t * 10 + random.randint(-1, 1), random.gauss(5.0, 2.0)))

    logging.info(
        "value: mean=%.3f stdev=%.3f norm=%.3f",
        queue.mean("value"), queue.stdev("value"), queue.norm("value"),
    )
    logging.info("timestamp_diff: mean=%.3f", queue.mean("timestamp_diff"))


if __name__ == "__main__":
    main()
