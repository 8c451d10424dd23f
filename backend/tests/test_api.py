"""
Integration tests for API endpoints.
"""
from io import BytesIO
import pytest
from fastapi.testclient import TestClient
from PIL import Image
from main import app
from stylematcher.core.config import reload_settings
from stylematcher.core.rate_limit import limiter
from stylematcher.services.vision import label_for_filename

SALES_CSV = (
    b"Region,Product,Month,Revenue,Units\n"
    b"Northeast,Widget,2024-01-01,1000,5\n"
    b"Pacific,Gadget,2024-01-01,1200,7\n"
    b"Northeast,Gadget,2024-02-01,1100,6\n"
    b"Pacific,Widget,2024-02-01,900,4\n"
)


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def env_settings(monkeypatch):
    """Set env vars and reload settings; restores both afterwards."""
    def apply(**values):
        for key, value in values.items():
            monkeypatch.setenv(key, str(value))
        reload_settings()

    yield apply
    monkeypatch.undo()
    reload_settings()


def _png(name="reference.png"):
    buf = BytesIO()
    Image.new("RGB", (10, 10), color=(59, 130, 246)).save(buf, format="PNG")
    return (name, buf.getvalue(), "image/png")


@pytest.mark.integration
def test_health_check(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.integration
def test_root_endpoint(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "message" in response.json()


@pytest.mark.integration
def test_correlation_id_is_echoed(client):
    response = client.get("/api/health", headers={"X-Correlation-ID": "test-123"})
    assert response.headers["X-Correlation-ID"] == "test-123"
    assert "X-Response-Time" in response.headers


@pytest.mark.integration
def test_correlation_id_is_generated(client):
    response = client.get("/api/health")
    assert response.headers["X-Correlation-ID"]


@pytest.mark.integration
def test_classify(client):
    rows = [
        {"Category": "Books", "Value": 3, "When": "2024-01-01"},
        {"Category": "Sports", "Value": "5", "When": "2024-02-01"},
    ]
    response = client.post("/api/classify", json={"rows": rows})
    assert response.status_code == 200
    assert response.json()["columns"] == [
        {"name": "Category", "kind": "categorical", "distinct_count": 2},
        {"name": "Value", "kind": "numeric", "distinct_count": 2},
        {"name": "When", "kind": "datetime", "distinct_count": 2},
    ]


@pytest.mark.integration
def test_classify_empty(client):
    response = client.post("/api/classify", json={"rows": []})
    assert response.status_code == 200
    assert response.json() == {"columns": []}


@pytest.mark.integration
def test_suggest_returns_vega_lite(client, simple_rows):
    response = client.post("/api/suggest", json={"rows": simple_rows})
    assert response.status_code == 200
    data = response.json()
    assert data["preferred_style"] is None
    assert [s["id"] for s in data["suggestions"]] == [f"chart-{i}" for i in range(1, 8)]

    bar = next(s for s in data["suggestions"] if s["chart_kind"] == "Bar Chart")
    spec = bar["render_spec"]
    assert spec["$schema"] == "https://vega.github.io/schema/vega-lite/v5.json"
    assert spec["data"]["values"] == simple_rows
    # hidden legend survives serialization as null
    assert spec["encoding"]["color"] == {"field": "Category", "legend": None}
    assert "transform" not in spec


@pytest.mark.integration
def test_suggest_with_preferred_style(client, simple_rows):
    response = client.post("/api/suggest", json={"rows": simple_rows, "preferred_style": "  Pie   Chart "})
    data = response.json()
    assert data["preferred_style"] == "Pie Chart"
    assert data["suggestions"][0]["chart_kind"] == "Pie Chart"
    assert data["suggestions"][0]["caveat"] == "Matches your uploaded Pie Chart style!"


@pytest.mark.integration
def test_suggest_classifies_rows_once(client, simple_rows):
    client.post("/api/suggest", json={"rows": simple_rows})
    performance = client.get("/api/metrics").json()["performance"]
    assert performance["classify_columns"]["count"] == 1
    assert performance["generate_suggestions"]["count"] == 1


@pytest.mark.integration
def test_suggest_rejects_malformed_body(client):
    response = client.post("/api/suggest", json={"rows": "not a list"})
    assert response.status_code == 422


@pytest.mark.integration
def test_detect_style(client):
    response = client.post("/api/detect-style", files={"image": _png("my-chart.png")})
    assert response.status_code == 200
    data = response.json()
    assert data["detected_label"] == label_for_filename("my-chart.png")
    assert 0.85 <= data["confidence"] <= 0.99
    assert data["sample_data"]


@pytest.mark.integration
def test_detect_style_rejects_non_image(client):
    response = client.post("/api/detect-style", files={"image": ("chart.png", b"not an image", "image/png")})
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "INVALID_IMAGE"


@pytest.mark.integration
def test_analyze_csv(client):
    response = client.post("/api/analyze", files={"file": ("sales.csv", BytesIO(SALES_CSV), "text/csv")})
    assert response.status_code == 200
    data = response.json()
    assert data["filename"] == "sales.csv"
    assert data["row_count"] == 4
    assert len(data["dataset"]) == 4
    assert data["detected_style"] is None
    kinds = {c["name"]: c["kind"] for c in data["columns"]}
    assert kinds == {
        "Region": "categorical",
        "Product": "categorical",
        "Month": "datetime",
        "Revenue": "numeric",
        "Units": "numeric",
    }
    assert len(data["suggestions"]) == 20


@pytest.mark.integration
def test_analyze_with_reference_image(client):
    response = client.post(
        "/api/analyze",
        files={
            "file": ("sales.csv", BytesIO(SALES_CSV), "text/csv"),
            "image": _png("dashboard.png"),
        },
    )
    assert response.status_code == 200
    data = response.json()
    label = label_for_filename("dashboard.png")
    assert data["detected_style"]["detected_label"] == label
    assert data["preferred_style"] == label


@pytest.mark.integration
def test_analyze_explicit_style_beats_image(client):
    response = client.post(
        "/api/analyze",
        files={
            "file": ("sales.csv", BytesIO(SALES_CSV), "text/csv"),
            "image": _png("dashboard.png"),
        },
        data={"preferred_style": "Heatmap"},
    )
    data = response.json()
    assert data["preferred_style"] == "Heatmap"
    assert data["suggestions"][0]["chart_kind"] == "Heatmap"
    assert data["detected_style"] is not None


@pytest.mark.integration
def test_analyze_truncates_rows(client, env_settings):
    env_settings(MAX_DATASET_ROWS=100)
    body = b"Score\n" + b"".join(f"{i}\n".encode() for i in range(150))
    response = client.post("/api/analyze", files={"file": ("scores.csv", BytesIO(body), "text/csv")})
    assert response.status_code == 200
    data = response.json()
    assert data["row_count"] == 100
    assert len(data["dataset"]) == 100
    assert len(data["suggestions"][0]["render_spec"]["data"]["values"]) == 100


@pytest.mark.integration
def test_analyze_file_too_large(client, env_settings):
    env_settings(MAX_FILE_SIZE_MB=1)
    body = b"a,b\n" + b"1,2\n" * 300000
    response = client.post("/api/analyze", files={"file": ("big.csv", BytesIO(body), "text/csv")})
    assert response.status_code == 413
    assert response.json()["detail"]["code"] == "FILE_TOO_LARGE"


@pytest.mark.integration
def test_analyze_invalid_file_type(client):
    response = client.post("/api/analyze", files={"file": ("notes.txt", BytesIO(b"hello"), "text/plain")})
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "INVALID_FILE_TYPE"


@pytest.mark.integration
def test_analyze_empty_file(client):
    response = client.post("/api/analyze", files={"file": ("empty.csv", BytesIO(b""), "text/csv")})
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "FILE_EMPTY"


@pytest.mark.integration
def test_analyze_is_rate_limited(client, env_settings):
    env_settings(RATE_LIMIT_PER_MINUTE=1)
    limiter.reset()
    try:
        files = {"file": ("sales.csv", SALES_CSV, "text/csv")}
        assert client.post("/api/analyze", files=files).status_code == 200
        response = client.post("/api/analyze", files=files)
        assert response.status_code == 429
        assert response.json()["code"] == "RATE_LIMIT_EXCEEDED"
        assert "Retry-After" in response.headers
    finally:
        limiter.reset()


@pytest.mark.integration
def test_metrics_endpoint(client):
    client.post("/api/analyze", files={"file": ("sales.csv", BytesIO(SALES_CSV), "text/csv")})
    response = client.get("/api/metrics")
    assert response.status_code == 200
    performance = response.json()["performance"]
    assert performance["parse_file"]["count"] == 1
    assert performance["generate_suggestions"]["count"] == 1
    assert performance["classify_columns"]["count"] == 1
    assert "request_duration" in performance


@pytest.mark.integration
def test_security_headers_on_api(client):
    response = client.get("/api/health")
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
