"""
Kubectl Adapters

Architectural Intent:
- KubectlRunner wraps the kubectl binary with asyncio subprocesses and a
  per-call timeout
- KubectlClusterAdapter implements ClusterControlPort (replicas, readiness,
  context selection, configuration listing)
- KubectlRoutingAdapter implements ServiceRoutingPort for both the service
  mesh (DestinationRule + VirtualService) and NGINX ingress canaries
- KubectlMonitoringAdapter implements MonitoringPort via PrometheusRule

Design Decisions:
- A runner is bound to one context for its whole life; for_context and
  switch_context hand out new bound instances instead of mutating the
  shared one, so concurrent runs never see each other's cluster
- The bound context is passed as --context on every call instead of
  rewriting the shared kubeconfig with "config use-context"
- Manifests are sent to "kubectl apply -f -" as JSON, which kubectl
  accepts in place of YAML
- Ingress canary annotations carry the two version names so the current
  split can be read back as a version -> weight map
"""

import asyncio
import copy
import json
import logging
from typing import Any, Optional

from helmsman.domain.value_objects.alert_rule import AlertRule
from helmsman.domain.value_objects.config_snapshot import ConfigObject
from helmsman.domain.value_objects.traffic_split import RoutingMechanism, validate_weights

logger = logging.getLogger(__name__)

MESH_API = "networking.istio.io/v1beta1"
CANARY = "nginx.ingress.kubernetes.io/canary"
CANARY_WEIGHT = "nginx.ingress.kubernetes.io/canary-weight"
CANARY_VERSION = "helmsman.io/canary-version"
STABLE_VERSION = "helmsman.io/stable-version"


class KubectlError(Exception):
    def __init__(self, args: list[str], returncode: int, stderr: str) -> None:
        self.command = args
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            f"kubectl {' '.join(args)} exited with {returncode}: {stderr.strip()}"
        )


class KubectlRunner:
    def __init__(
        self, binary: str = "kubectl", timeout: float = 30.0, context: Optional[str] = None
    ) -> None:
        self.binary = binary
        self.timeout = timeout
        self.context = context

    def for_context(self, context: Optional[str]) -> "KubectlRunner":
        """Return a copy of this runner that targets ``context``."""
        if context == self.context:
            return self
        bound = copy.copy(self)
        bound.context = context
        return bound

    async def run(
        self,
        *args: str,
        stdin: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> str:
        cmd = [self.binary]
        if self.context:
            cmd += ["--context", self.context]
        cmd += list(args)
        logger.debug("Running %s", " ".join(cmd))

        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.PIPE if stdin is not None else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(stdin.encode() if stdin is not None else None),
                timeout=timeout or self.timeout,
            )
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise TimeoutError(f"kubectl {' '.join(args)} timed out")

        if proc.returncode != 0:
            raise KubectlError(list(args), proc.returncode, stderr.decode(errors="replace"))
        return stdout.decode()

    async def get_json(self, *args: str) -> dict[str, Any]:
        return json.loads(await self.run("get", *args, "-o", "json"))

    async def apply(self, manifest: dict[str, Any]) -> None:
        await self.run("apply", "-f", "-", stdin=json.dumps(manifest))


class KubectlClusterAdapter:
    def __init__(self, runner: KubectlRunner) -> None:
        self.runner = runner

    async def get_replicas(self, deployment: str, namespace: str) -> tuple[int, int]:
        obj = await self.runner.get_json("deployment", deployment, "-n", namespace)
        ready = (obj.get("status") or {}).get("readyReplicas") or 0
        desired = (obj.get("spec") or {}).get("replicas") or 0
        return int(ready), int(desired)

    async def set_replicas(self, deployment: str, namespace: str, count: int) -> None:
        await self.runner.run(
            "scale", "deployment", deployment, "-n", namespace, f"--replicas={count}"
        )
        logger.info("Scaled %s/%s to %d replicas", namespace, deployment, count)

    async def wait_ready(self, deployment: str, namespace: str, timeout: float) -> None:
        try:
            await self.runner.run(
                "rollout",
                "status",
                f"deployment/{deployment}",
                "-n",
                namespace,
                f"--timeout={int(timeout)}s",
                timeout=timeout + self.runner.timeout,
            )
        except KubectlError as e:
            if "timed out" in e.stderr or "exceeded its progress deadline" in e.stderr:
                raise TimeoutError(e.stderr.strip()) from e
            raise

    async def switch_context(self, cluster: str) -> "KubectlClusterAdapter":
        # Fails with KubectlError when the context does not exist
        await self.runner.run("config", "get-contexts", cluster, "-o", "name")
        logger.info("Using kube context %s", cluster)
        return KubectlClusterAdapter(self.runner.for_context(cluster))

    async def list_config_objects(self, namespace: str) -> list[ConfigObject]:
        obj = await self.runner.get_json("configmaps,secrets", "-n", namespace)
        objects = []
        for item in obj.get("items", []):
            meta = item.get("metadata") or {}
            data = dict(item.get("data") or {})
            data.update(item.get("binaryData") or {})
            objects.append(
                ConfigObject(
                    kind=item.get("kind", ""),
                    name=meta.get("name", ""),
                    keys=tuple(sorted(data)),
                    type=item.get("type", ""),
                )
            )
        return objects


class KubectlRoutingAdapter:
    def __init__(
        self,
        runner: KubectlRunner,
        subsets: tuple[str, ...] = ("blue", "green"),
        mesh_namespace: str = "istio-system",
    ) -> None:
        self.runner = runner
        self.subsets = subsets
        self.mesh_namespace = mesh_namespace

    async def detect_mechanism(self, service: str, namespace: str) -> RoutingMechanism:
        for args in (
            ("virtualservice", service, "-n", namespace),
            ("gateway", "-n", self.mesh_namespace),
        ):
            try:
                await self.runner.run("get", *args)
                return RoutingMechanism.MESH_WEIGHTED_ROUTE
            except KubectlError:
                continue
        return RoutingMechanism.INGRESS_CANARY

    async def get_weighted_route(
        self, service: str, namespace: str, mechanism: RoutingMechanism
    ) -> Optional[dict[str, int]]:
        if mechanism == RoutingMechanism.MESH_WEIGHTED_ROUTE:
            try:
                vs = await self.runner.get_json("virtualservice", service, "-n", namespace)
            except KubectlError:
                return None
            return virtual_service_weights(vs)

        ingress = await self.runner.get_json("ingress", service, "-n", namespace)
        return ingress_canary_weights(ingress)

    async def set_weighted_route(
        self,
        service: str,
        namespace: str,
        splits: dict[str, int],
        mechanism: RoutingMechanism,
    ) -> None:
        validate_weights(splits)
        if mechanism == RoutingMechanism.MESH_WEIGHTED_ROUTE:
            subsets = tuple(dict.fromkeys(self.subsets + tuple(splits)))
            await self.runner.apply(destination_rule(service, namespace, subsets))
            await self.runner.apply(virtual_service(service, namespace, splits))
        else:
            selector = await self.get_selector(service, namespace)
            canary, stable = _canary_and_stable(splits, selector)
            await self.runner.run(
                "annotate",
                "ingress",
                service,
                "-n",
                namespace,
                f'{CANARY}=true',
                f"{CANARY_WEIGHT}={splits[canary]}",
                f"{CANARY_VERSION}={canary}",
                f"{STABLE_VERSION}={stable}",
                "--overwrite",
            )
        logger.info(
            "Weighted route for %s/%s set to %s via %s",
            namespace,
            service,
            splits,
            mechanism.value,
        )

    async def clear_weighted_route(
        self, service: str, namespace: str, mechanism: RoutingMechanism
    ) -> None:
        if mechanism == RoutingMechanism.MESH_WEIGHTED_ROUTE:
            await self.runner.run(
                "delete", "virtualservice", service, "-n", namespace, "--ignore-not-found"
            )
        else:
            await self.runner.run(
                "annotate",
                "ingress",
                service,
                "-n",
                namespace,
                f"{CANARY}-",
                f"{CANARY_WEIGHT}-",
                f"{CANARY_VERSION}-",
                f"{STABLE_VERSION}-",
            )
        logger.info("Weighted route for %s/%s removed", namespace, service)

    async def get_selector(self, service: str, namespace: str) -> Optional[str]:
        svc = await self.runner.get_json("service", service, "-n", namespace)
        return ((svc.get("spec") or {}).get("selector") or {}).get("version")

    async def set_selector(self, service: str, namespace: str, version: str) -> None:
        patch = {"spec": {"selector": {"version": version}}}
        await self.runner.run(
            "patch", "service", service, "-n", namespace, "-p", json.dumps(patch)
        )
        logger.info("Service %s/%s selector set to version %s", namespace, service, version)


class KubectlMonitoringAdapter:
    def __init__(self, runner: KubectlRunner, namespace: str = "monitoring") -> None:
        self.runner = runner
        self.namespace = namespace

    async def register_alert_rule(self, rule: AlertRule, cluster: Optional[str] = None) -> None:
        runner = self.runner.for_context(cluster) if cluster else self.runner
        await runner.apply(prometheus_rule(rule, self.namespace))
        logger.info(
            "PrometheusRule %s applied in %s (%s)",
            rule.name,
            self.namespace,
            runner.context or "current context",
        )


def _canary_and_stable(
    splits: dict[str, int], selector: Optional[str]
) -> tuple[str, str]:
    """The canary is the version the service selector does not point at.

    Without a usable selector the first entry is taken as the canary.
    """
    versions = list(splits)
    if selector in splits:
        stable = selector
        canary = next(v for v in versions if v != stable)
    else:
        canary, stable = versions[0], versions[1]
    return canary, stable


def destination_rule(service: str, namespace: str, subsets: tuple[str, ...]) -> dict:
    return {
        "apiVersion": MESH_API,
        "kind": "DestinationRule",
        "metadata": {"name": service, "namespace": namespace},
        "spec": {
            "host": service,
            "trafficPolicy": {
                "connectionPool": {
                    "tcp": {"maxConnections": 100},
                    "http": {
                        "http1MaxPendingRequests": 50,
                        "http2MaxRequests": 100,
                        "maxRequestsPerConnection": 2,
                    },
                },
                "loadBalancer": {"simple": "LEAST_REQUEST"},
                "outlierDetection": {
                    "consecutive5xxErrors": 5,
                    "interval": "30s",
                    "baseEjectionTime": "30s",
                    "maxEjectionPercent": 50,
                    "minHealthPercent": 40,
                },
            },
            "subsets": [
                {"name": subset, "labels": {"version": subset}} for subset in subsets
            ],
        },
    }


def virtual_service(service: str, namespace: str, splits: dict[str, int]) -> dict:
    """Header-pinned route for the first version plus the weighted default."""
    pinned = next(iter(splits))
    return {
        "apiVersion": MESH_API,
        "kind": "VirtualService",
        "metadata": {"name": service, "namespace": namespace},
        "spec": {
            "hosts": [service],
            "http": [
                {
                    "match": [{"headers": {"x-version": {"exact": pinned}}}],
                    "route": [
                        {"destination": {"host": service, "subset": pinned}, "weight": 100}
                    ],
                },
                {
                    "route": [
                        {"destination": {"host": service, "subset": version}, "weight": weight}
                        for version, weight in splits.items()
                    ]
                },
            ],
        },
    }


def virtual_service_weights(vs: dict) -> Optional[dict[str, int]]:
    for route in (vs.get("spec") or {}).get("http") or []:
        if route.get("match"):
            continue
        weights = {}
        for dest in route.get("route") or []:
            subset = (dest.get("destination") or {}).get("subset")
            if subset:
                weights[subset] = int(dest.get("weight", 0))
        return weights or None
    return None


def ingress_canary_weights(ingress: dict) -> Optional[dict[str, int]]:
    annotations = (ingress.get("metadata") or {}).get("annotations") or {}
    if annotations.get(CANARY) != "true":
        return None
    canary = annotations.get(CANARY_VERSION)
    stable = annotations.get(STABLE_VERSION)
    if not canary or not stable:
        return None
    weight = int(annotations.get(CANARY_WEIGHT, "0"))
    return {canary: weight, stable: 100 - weight}


def prometheus_rule(rule: AlertRule, namespace: str) -> dict:
    return {
        "apiVersion": "monitoring.coreos.com/v1",
        "kind": "PrometheusRule",
        "metadata": {"name": rule.name, "namespace": namespace},
        "spec": {
            "groups": [
                {
                    "name": rule.group,
                    "interval": rule.interval,
                    "rules": [rule.to_dict()],
                }
            ]
        },
    }
