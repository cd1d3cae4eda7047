"""
Connectivity prober.

Runs a bounded ICMP echo batch from each source host to each destination
host and reports pass/fail per ordered pair. A pair only passes when every
echo in the batch is answered. Probe failures are data, never exceptions:
they degrade the report but do not abort the run.
"""

import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from devboxlab.config import config
from devboxlab.exceptions import DevboxError
from devboxlab.models.environment import Environment
from devboxlab.orchestrator.compose import ExecResult
from devboxlab.utils.logger import get_logger

logger = get_logger(__name__)

NOT_RUNNING = "not running"
TIMEOUT = "timeout"
UNREACHABLE = "unreachable"
PING_MISSING = "ping not available"

# iputils: "3 packets transmitted, 3 received"; busybox: "..., 3 packets received"
_PACKETS_RE = re.compile(r"(\d+) packets transmitted, (\d+) (?:packets )?received")
# iputils: "rtt min/avg/max/mdev = 0.05/0.07/0.09/0.01 ms"; busybox: "round-trip min/avg/max = ..."
_RTT_RE = re.compile(r"(?:rtt|round-trip) min/avg/max(?:/mdev)? = [\d.]+/([\d.]+)/")
_UNREACHABLE_RE = re.compile(r"unreachable", re.IGNORECASE)
_MISSING_RE = re.compile(
    r"executable file not found|ping: not found|no such file or directory",
    re.IGNORECASE,
)


@dataclass
class ProbeResult:
    """Outcome of probing one ordered host pair."""

    source: str
    destination: str
    success: bool
    latency_ms: float | None = None
    reason: str | None = None

    @property
    def pair(self) -> tuple[str, str]:
        return self.source, self.destination


@dataclass
class PingSummary:
    transmitted: int
    received: int
    avg_ms: float | None


def parse_ping_output(output: str) -> PingSummary | None:
    """
    Extract packet counts and average RTT from ping output.

    Returns:
        PingSummary, or None when no statistics line is present.
    """
    match = _PACKETS_RE.search(output)
    if not match:
        return None
    rtt = _RTT_RE.search(output)
    return PingSummary(
        transmitted=int(match.group(1)),
        received=int(match.group(2)),
        avg_ms=float(rtt.group(1)) if rtt else None,
    )


def classify_ping(source: str, destination: str, count: int, result: ExecResult) -> ProbeResult:
    """Turn a captured ping run into a ProbeResult."""
    output = f"{result.stdout}\n{result.stderr}"

    if result.timed_out:
        return ProbeResult(source, destination, False, reason=TIMEOUT)

    if "is not running" in output:
        return ProbeResult(source, destination, False, reason=NOT_RUNNING)

    if result.returncode in (126, 127) or _MISSING_RE.search(output):
        return ProbeResult(source, destination, False, reason=PING_MISSING)

    summary = parse_ping_output(output)
    if summary is None:
        message = result.stderr.strip() or result.stdout.strip()
        return ProbeResult(
            source,
            destination,
            False,
            reason=message or f"ping exited with status {result.returncode}",
        )

    if result.returncode == 0 and summary.received >= count:
        return ProbeResult(source, destination, True, latency_ms=summary.avg_ms)

    if summary.received > 0:
        reason = f"{summary.received}/{summary.transmitted} replies"
    elif _UNREACHABLE_RE.search(output):
        reason = UNREACHABLE
    else:
        reason = TIMEOUT
    return ProbeResult(source, destination, False, latency_ms=summary.avg_ms, reason=reason)


class ConnectivityProber:
    """
    Probes reachability between declared hosts.

    Uses a single ``ps`` snapshot to short-circuit pairs whose source or
    destination is not running, so a never-started host reports
    ``not running`` rather than a timeout.

    Attributes:
        adapter: Orchestrator adapter providing ``ps`` and ``run_in``.
        count: Echo requests per pair.
        timeout: Per-echo timeout in seconds.
        workers: Pairs probed concurrently (1 = sequential).
    """

    def __init__(
        self,
        adapter,
        count: int | None = None,
        timeout: int | None = None,
        workers: int | None = None,
    ):
        self.adapter = adapter
        self.count = count
        self.timeout = timeout
        self.workers = workers or config.PROBE_WORKERS

    def _settings(self, env: Environment) -> tuple[int, int]:
        count = self.count or env.probe.count
        timeout = self.timeout or env.probe.timeout
        return count, timeout

    def probe(
        self, env: Environment, pairs: list[tuple[str, str]] | None = None
    ) -> list[ProbeResult]:
        """
        Probe every pair.

        Args:
            env: Environment to probe.
            pairs: Ordered pairs; defaults to ``env.probe_pairs()``.

        Returns:
            One ProbeResult per pair, in pair order.
        """
        pairs = env.probe_pairs() if pairs is None else list(pairs)
        if not pairs:
            return []

        try:
            running = {s.host for s in self.adapter.ps(env) if s.running}
        except DevboxError as e:
            logger.warning(f"Cannot query host states: {e}")
            return [ProbeResult(src, dst, False, reason=str(e)) for src, dst in pairs]

        count, timeout = self._settings(env)

        def run_pair(pair: tuple[str, str]) -> ProbeResult:
            return self._probe_pair(env, pair[0], pair[1], running, count, timeout)

        if self.workers > 1 and len(pairs) > 1:
            # map() yields in input order regardless of completion order
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                return list(pool.map(run_pair, pairs))
        return [run_pair(pair) for pair in pairs]

    def _probe_pair(
        self,
        env: Environment,
        source: str,
        destination: str,
        running: set[str],
        count: int,
        timeout: int,
    ) -> ProbeResult:
        for name in (source, destination):
            if name not in running:
                logger.info(f"Probe {source} -> {destination}: {name} is not running")
                return ProbeResult(source, destination, False, reason=NOT_RUNNING)

        logger.info(f"Testing ping from {source} to {destination}...")
        result = self.adapter.run_in(
            env,
            source,
            ["ping", "-c", str(count), "-W", str(timeout), destination],
            timeout=count * (timeout + 1) + 15,
        )
        probe = classify_ping(source, destination, count, result)
        if probe.success:
            logger.debug(f"Probe {source} -> {destination}: ok ({probe.latency_ms} ms)")
        else:
            logger.warning(f"Probe {source} -> {destination} failed: {probe.reason}")
        return probe
