PAYLOAD = {"fecha_inicio": "2024-03-04", "fecha_fin": "2024-03-10", "clientes": [1]}


def _start(client, payload=PAYLOAD):
    response = client.post("/start-weekly-plan-generation", json=payload)
    return response


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_start_returns_job_id_immediately(client):
    response = _start(client)
    assert response.status_code == 202
    assert set(response.json()) == {"job_id"}


def test_poll_completed_job_returns_plan(client):
    job_id = _start(client).json()["job_id"]
    response = client.get(f"/job-status/{job_id}")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "completed"
    assert body["progress_percentage"] == 100
    assert "error" not in body
    plan = body["result"]["plan"]
    assert body["result"]["status"] == "success"
    assert plan[0]["cliente_id"] == 1
    assert plan[0]["cliente_nombre"] == "Minera Norte"
    assert [m["fecha"] for m in plan[0]["menus"]] == [f"2024-03-{d:02d}" for d in range(4, 11)]


def test_plan_never_exceeds_budget(client):
    job_id = _start(client).json()["job_id"]
    menus = client.get(f"/job-status/{job_id}").json()["result"]["plan"][0]["menus"]
    for menu in menus:
        assert menu["costo_total"] <= 20
        assert 500 <= menu["kilocalorias_total"] <= 900
        recipes = {c["receta_id"] for c in menu["componentes"]}
        assert "f-pricey" not in recipes
        assert "inactive" not in recipes


def test_constant_slots_come_last(client):
    job_id = _start(client).json()["job_id"]
    menu = client.get(f"/job-status/{job_id}").json()["result"]["plan"][0]["menus"][0]
    assert [c["componente_nombre"] for c in menu["componentes"]] == ["FONDO", "ENTRADA", "POSTRE", "REFRESCO"]
    assert all(c["premium"] is False for c in menu["componentes"])


def test_infeasible_client_reported_in_result(client):
    job_id = _start(client, {**PAYLOAD, "clientes": [1, 3]}).json()["job_id"]
    body = client.get(f"/job-status/{job_id}").json()
    assert body["status"] == "completed"
    third = body["result"]["plan"][1]
    assert third["cliente_id"] == 3
    assert third["estado"] == "infeasible"
    assert third["menus"] == []
    assert third["motivo"]


def test_empty_slot_rejected_without_job(client, store):
    response = _start(client, {**PAYLOAD, "clientes": [2]})
    assert response.status_code == 400
    assert "SOPA" in response.json()["detail"]
    assert store.list() == []


def test_unknown_client_rejected(client):
    response = _start(client, {**PAYLOAD, "clientes": [404]})
    assert response.status_code == 400


def test_inverted_dates_rejected(client):
    response = _start(client, {**PAYLOAD, "fecha_inicio": "2024-03-10", "fecha_fin": "2024-03-04"})
    assert response.status_code == 400


def test_malformed_date_rejected(client):
    response = _start(client, {**PAYLOAD, "fecha_inicio": "04/03/2024"})
    assert response.status_code == 422


def test_unknown_job_is_404(client):
    response = client.get("/job-status/does-not-exist")
    assert response.status_code == 404


def test_delete_is_idempotent(client):
    job_id = _start(client).json()["job_id"]
    assert client.delete(f"/job/{job_id}").status_code == 204
    assert client.delete(f"/job/{job_id}").status_code == 204
    assert client.get(f"/job-status/{job_id}").status_code == 404


def test_delete_unknown_job_is_204(client):
    assert client.delete("/job/never-existed").status_code == 204
