"""API-contract checks against the product endpoints exposed through the gateway.

Response bodies are decoded into `ProductBody` / product lists before any field is
asserted, and the status codes accepted for malformed input are an explicit
`StatusPolicy` instead of ad-hoc alternatives.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..capabilities import Capabilities
from ..dotenv import EnvReader
from ..settings import HarnessConfig
from ..suite import Check
from ..types import HttpResponse


@dataclass(frozen=True)
class StatusPolicy:
    name: str
    accepted: frozenset[int]

    def allows(self, status: int | None) -> bool:
        return status is not None and status in self.accepted

    def describe(self) -> str:
        return "/".join(str(s) for s in sorted(self.accepted))


CREATED = StatusPolicy("created", frozenset({201}))
LISTED = StatusPolicy("listed", frozenset({200}))
REJECTED = StatusPolicy("rejected", frozenset({400}))
# Opt-in only: treats a server crash on malformed input as an acceptable rejection.
REJECTED_OR_SERVER_ERROR = StatusPolicy("rejected_or_server_error", frozenset({400, 500}))


def malformed_input_policy(config: HarnessConfig) -> StatusPolicy:
    return REJECTED_OR_SERVER_ERROR if config.lenient_validation else REJECTED


@dataclass(frozen=True)
class ProductBody:
    id: str
    name: str | None
    price: float | None


def decode_product(data: Any, *, id_field: str) -> tuple[ProductBody | None, str | None]:
    if isinstance(data, dict) and isinstance(data.get("data"), dict) and id_field not in data:
        data = data["data"]
    if not isinstance(data, dict):
        return None, "body is not a JSON object"
    raw_id = data.get(id_field)
    if raw_id is None or not str(raw_id).strip():
        return None, f"missing `{id_field}` field"
    name = data.get("name")
    price = data.get("price")
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        price = None
    return ProductBody(id=str(raw_id), name=name if isinstance(name, str) else None, price=price), None


def decode_product_list(data: Any) -> tuple[list[dict[str, Any]] | None, str | None]:
    if isinstance(data, dict):
        for key in ("data", "products", "items"):
            if isinstance(data.get(key), list):
                data = data[key]
                break
    if not isinstance(data, list):
        return None, "body is not a JSON list of products"
    return [x for x in data if isinstance(x, dict)], None


def _body_excerpt(resp: HttpResponse, limit: int = 200) -> str:
    text = " ".join((resp.body or "").split())
    return text[:limit]


def _status_mismatch(resp: HttpResponse, policy: StatusPolicy) -> str:
    msg = f"expected {policy.describe()}, got {resp.describe()}"
    excerpt = _body_excerpt(resp)
    if excerpt:
        msg += f" body={excerpt}"
    return msg


def build_checks(config: HarnessConfig, caps: Capabilities, env: EnvReader) -> list[Check]:
    products_url = f"{config.gateway_base}/api/products"
    timeout = config.http_timeout_seconds
    malformed = malformed_input_policy(config)

    def post(payload: Any) -> HttpResponse:
        return caps.http_post_json(products_url, payload, timeout_seconds=timeout)

    def create_product() -> tuple[bool, str]:
        resp = post({"name": "Test Product", "price": 99.99})
        if not CREATED.allows(resp.status):
            return False, _status_mismatch(resp, CREATED)
        data, err = resp.json()
        if err:
            return False, f"201 but {err}"
        product, err = decode_product(data, id_field=config.id_field)
        if product is None:
            return False, f"201 but {err}"
        if product.name != "Test Product":
            return False, f"201 but name={product.name!r}"
        return True, f"created {config.id_field}={product.id}"

    def list_products() -> tuple[bool, str]:
        resp = caps.http_get(products_url, timeout_seconds=timeout)
        if not LISTED.allows(resp.status):
            return False, _status_mismatch(resp, LISTED)
        data, err = resp.json()
        if err:
            return False, f"200 but {err}"
        items, err = decode_product_list(data)
        if items is None:
            return False, f"200 but {err}"
        return True, f"{len(items)} products"

    def rejects(payload: Any, policy: StatusPolicy):
        def check() -> tuple[bool, str]:
            resp = post(payload)
            if policy.allows(resp.status):
                return True, f"rejected with {resp.status}"
            return False, _status_mismatch(resp, policy)

        return check

    def burst() -> tuple[bool, str]:
        n = int(config.burst_size)
        for i in range(1, n + 1):
            resp = post({"name": f"Product {i}", "price": round(i * 10 + 0.99, 2)})
            if not CREATED.allows(resp.status):
                return False, f"product {i}/{n}: {_status_mismatch(resp, CREATED)}"
        resp = caps.http_get(products_url, timeout_seconds=timeout)
        if not LISTED.allows(resp.status):
            return False, f"listing after burst: {_status_mismatch(resp, LISTED)}"
        data, err = resp.json()
        items, list_err = decode_product_list(data) if err is None else (None, err)
        if items is None:
            return False, f"listing after burst: {list_err}"
        named = sum(1 for item in items if isinstance(item.get("name"), str) and item["name"])
        if named < n:
            return False, f"listing shows {named} named products after creating {n}"
        return True, f"created {n} products; listing shows {named}"

    def response_format() -> tuple[bool, str]:
        resp = post({"name": "Format Test", "price": 15.50})
        if not CREATED.allows(resp.status):
            return False, _status_mismatch(resp, CREATED)
        data, err = resp.json()
        if err:
            return False, f"201 but {err}"
        product, err = decode_product(data, id_field=config.id_field)
        if product is None:
            return False, str(err)
        problems: list[str] = []
        if product.name != "Format Test":
            problems.append(f"name={product.name!r}")
        if product.price is None or abs(product.price - 15.5) > 1e-9:
            problems.append(f"price={product.price!r}")
        if problems:
            return False, "unexpected " + ", ".join(problems)
        return True, f"{config.id_field}, name and price echoed"

    def gateway_proxy() -> tuple[bool, str]:
        resp = caps.http_get(products_url, timeout_seconds=timeout)
        if LISTED.allows(resp.status):
            return True, "gateway forwards /api/products to the backend"
        return False, _status_mismatch(resp, LISTED)

    return [
        Check("create product returns 201 with id", create_product),
        Check("list products returns 200", list_products),
        Check("empty name is rejected", rejects({"name": "", "price": 10.00}, REJECTED)),
        Check("missing name is rejected", rejects({"price": 10.00}, malformed)),
        Check("negative price is rejected", rejects({"name": "Test Product", "price": -5.00}, REJECTED)),
        Check("non-numeric price is rejected", rejects({"name": "Test Product", "price": "not-a-number"}, malformed)),
        Check(f"{config.burst_size} sequential creations succeed", burst),
        Check("response includes id, name and price", response_format),
        Check("gateway proxies product requests", gateway_proxy),
    ]
