def create_engineer(client, name="Олег Шевченко", email="oleg@aircontrol.com.ua", **extra):
    return client.post("/api/engineers/", json={"name": name, "email": email, **extra})


# ============================================================================
# Engineers
# ============================================================================

def test_engineer_crud(client):
    response = create_engineer(client, phone="067 123 45 67")
    assert response.status_code == 400  # not in +380 format

    response = create_engineer(client, phone="+380-67-123-45-67")
    assert response.status_code == 201
    engineer = response.json()
    assert engineer["phone"] == "+380671234567"

    assert create_engineer(client, name="Дубль", email="OLEG@aircontrol.com.ua").status_code == 400

    response = client.put(f"/api/engineers/{engineer['id']}", json={"name": "Олег Петрович"})
    assert response.status_code == 200
    assert response.json()["name"] == "Олег Петрович"
    assert response.json()["email"] == "oleg@aircontrol.com.ua"

    assert [e["name"] for e in client.get("/api/engineers/").json()] == ["Олег Петрович"]
    assert client.get("/api/engineers/missing").status_code == 404


def test_deleting_engineer_clears_rosters(client):
    engineer = create_engineer(client).json()
    contract = client.post("/api/contracts/", json={
        "contractNumber": "E-1",
        "objectName": "Об'єкт",
        "maintenancePeriods": [{"assignedEngineerIds": [engineer["id"]]}],
    }).json()
    assert contract["maintenancePeriods"][0]["assignedEngineerIds"] == [engineer["id"]]

    assert client.delete(f"/api/engineers/{engineer['id']}").status_code == 204
    stored = client.get(f"/api/contracts/{contract['id']}").json()
    assert stored["maintenancePeriods"][0]["assignedEngineerIds"] == []
    assert client.get("/api/engineers/").json() == []


# ============================================================================
# Equipment models
# ============================================================================

def test_equipment_model_directory(client):
    response = client.post("/api/equipment-models/", json={"category": "Кондиціонер", "name": "Daikin FTXM25"})
    assert response.status_code == 201
    model = response.json()

    client.post("/api/equipment-models/", json={"category": "ДБЖ", "name": "APC Smart-UPS 3000"})
    duplicate = client.post("/api/equipment-models/", json={"category": "Кондиціонер", "name": "daikin ftxm25"})
    assert duplicate.status_code == 400

    assert client.get("/api/equipment-models/categories").json() == ["ДБЖ", "Кондиціонер"]
    assert len(client.get("/api/equipment-models/", params={"category": "ДБЖ"}).json()) == 1

    response = client.put(f"/api/equipment-models/{model['id']}", json={"name": "Daikin FTXM35"})
    assert response.json()["name"] == "Daikin FTXM35"

    assert client.delete(f"/api/equipment-models/{model['id']}").status_code == 204
    assert client.put(f"/api/equipment-models/{model['id']}", json={"name": "X"}).status_code == 404


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_engineer_on_completed_period_cannot_be_deleted(client):
    engineer = create_engineer(client).json()
    scheduled = client.post("/api/contracts/", json={
        "contractNumber": "E-2",
        "objectName": "Аптека",
        "maintenancePeriods": [{"assignedEngineerIds": [engineer["id"]]}],
    }).json()
    done = client.post("/api/contracts/", json={
        "contractNumber": "E-3",
        "objectName": "Банк",
        "maintenancePeriods": [{"assignedEngineerIds": [engineer["id"]]}],
    }).json()
    period_id = done["maintenancePeriods"][0]["id"]
    response = client.post(f"/api/contracts/{done['id']}/periods/{period_id}/finalize", json={
        "actualStartDate": "2099-03-10", "actualEndDate": "2099-03-10", "engineerIds": [engineer["id"]],
    })
    assert response.status_code == 200

    assert client.delete(f"/api/engineers/{engineer['id']}").status_code == 400

    # Nothing was written, including the contract processed before the refusal
    stored = client.get(f"/api/contracts/{scheduled['id']}").json()
    assert stored["maintenancePeriods"][0]["assignedEngineerIds"] == [engineer["id"]]
    assert stored["version"] == 1
    stored = client.get(f"/api/contracts/{done['id']}").json()
    assert stored["maintenancePeriods"][0]["assignedEngineerIds"] == [engineer["id"]]
    assert client.get(f"/api/engineers/{engineer['id']}").status_code == 200
