import json

from ticketgraph.core.errors import ERROR_SER_KEY
from ticketgraph.tickets.store import StoreError

CREATE = """
mutation {
  tickets {
    createTicket(ctInput: {title: "concert"}, testInput: [{c: 1, d: 2}]) {
      id creator title details { c d }
    }
  }
}
"""

DELETE = """
mutation Delete($id: String!) {
  tickets { deleteTicket(id: $id) { id title } }
}
"""


def _gql(client, query, headers=None, variables=None):
    return client.post("/graphql", json={"query": query, "variables": variables or {}}, headers=headers or {})


def test_version(client):
    response = _gql(client, "{ version }")

    assert response.status_code == 200
    assert response.json()["data"] == {"version": "1.0"}


def test_create_ticket_mutation(client, auth_headers, store):
    response = _gql(client, CREATE, auth_headers)

    ticket = response.json()["data"]["tickets"]["createTicket"]
    assert ticket["id"]
    assert ticket["creator"] == "alice"
    assert ticket["details"] == [{"c": 1, "d": 2}]
    assert len(store.edges) == 1


def test_queries_agree_on_linkage(client, auth_headers):
    ticket = _gql(client, CREATE, auth_headers).json()["data"]["tickets"]["createTicket"]

    query = """
    query Linked($ticketId: String) {
      tickets {
        list { id }
        listSale { id user ticket { id } }
        saleRelate(ticketId: $ticketId) { id }
      }
    }
    """
    data = _gql(client, query, variables={"ticketId": ticket["id"]}).json()["data"]["tickets"]

    assert data["list"] == [{"id": ticket["id"]}]
    assert len(data["listSale"]) == 1
    assert data["listSale"][0]["ticket"] == {"id": ticket["id"]}
    assert data["saleRelate"] == [{"id": data["listSale"][0]["id"]}]


def test_error_extensions_match_rest_rendering(client, store):
    response = _gql(client, CREATE)

    error = response.json()["errors"][0]
    assert error["message"] == "You are not logged in"
    assert error["extensions"]["req_id"] == response.headers["X-Request-Id"]
    assert json.loads(error["extensions"][ERROR_SER_KEY]) == {"AuthFailNoCredential": {}}
    assert store.total_calls == 0

    rest = client.post("/tickets", json={"ct_input": {"title": "concert"}, "test_input": []})
    assert rest.json()["error"]["error"] == error["message"]


def test_store_failure_phase_in_serialized_error(client, auth_headers, store):
    store.failures["relate"] = StoreError("edge write timed out")

    error = _gql(client, CREATE, auth_headers).json()["errors"][0]

    serialized = json.loads(error["extensions"][ERROR_SER_KEY])
    assert serialized["StoreFail"]["phase"] == "relate"
    assert serialized["StoreFail"]["source"] == "edge write timed out"
    assert len(serialized["StoreFail"]["committed"]) == 2


def test_delete_unknown_ticket(client, auth_headers):
    response = _gql(client, DELETE, auth_headers, {"id": "nonexistent-id"})

    error = response.json()["errors"][0]
    assert error["message"] == "Ticket id nonexistent-id not found"
    assert json.loads(error["extensions"][ERROR_SER_KEY]) == {
        "EntityDeleteFailIdNotFound": {"id": "nonexistent-id"}
    }


def test_delete_ticket_mutation(client, auth_headers):
    ticket = _gql(client, CREATE, auth_headers).json()["data"]["tickets"]["createTicket"]

    response = _gql(client, DELETE, auth_headers, {"id": ticket["id"]})

    assert response.json()["data"]["tickets"]["deleteTicket"] == {"id": ticket["id"], "title": "concert"}
