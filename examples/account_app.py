"""
Account API - role chains protecting a small FastAPI application.

Two chains are declared:

- **auth**: ``Unauthenticated`` (list) then ``Authenticated`` (+ create)
- **use.Account**: ``Member`` (get) then ``Admin`` (+ update, delete)

Every request starts as ``auth.Unauthenticated``. A bearer token marks the
caller as authenticated, and the account membership of the token's user
is looked up in the background while the endpoint starts.

Usage:
    uvicorn examples.account_app:app --reload

    curl localhost:8000/accounts
    curl -H "Authorization: Bearer alice" localhost:8000/accounts/1
"""

import asyncio
from typing import List

from fastapi import FastAPI, Request

from chain_rbac import (
    AuthorizerMiddleware,
    RBACPermission,
    Rbac,
    chain,
    require_permissions,
    require_roles,
)

auth_chain = chain("auth").add("Unauthenticated", ["list"]).add(
    "Authenticated", ["create"]
)
account_chain = chain("use.Account").add("Member", ["get"]).add(
    "Admin", ["update", "delete"]
)

rbac = Rbac(auth_chain, account_chain)

# Stand-in for a membership table in a database
MEMBERSHIPS = {
    "alice": ["use.Account.Admin"],
    "bob": ["use.Account.Member"],
    "mallory": ["use.Account.Owner"],
}


async def lookup_memberships(user: str) -> List[str]:
    await asyncio.sleep(0.01)
    return MEMBERSHIPS.get(user, [])


def load_roles(request: Request, authorizer) -> None:
    authorizer.add("auth.Unauthenticated")
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return
    user = auth.split(" ", 1)[1]
    authorizer.add("auth.Authenticated")
    authorizer.add_async(lambda: lookup_memberships(user))


app = FastAPI(title="Account API")
app.add_middleware(AuthorizerMiddleware, rbac=rbac, role_loader=load_roles)


@app.get("/accounts")
async def list_accounts(_: None = RBACPermission("list")):
    return {"accounts": ["1", "2"]}


@app.get("/accounts/{account_id}")
@require_permissions("get")
async def get_account(request: Request, account_id: str):
    return {"id": account_id}


@app.delete("/accounts/{account_id}")
@require_permissions(["update", "delete"])
async def delete_account(request: Request, account_id: str):
    return {"deleted": account_id}


@app.get("/admin")
@require_roles("use.Account.Admin")
async def admin(request: Request):
    return {"admin": True}


@app.get("/whoami")
async def whoami(request: Request):
    authorizer = request.state.authorizer
    await authorizer.wait_async()
    error = authorizer.err()
    return {
        "roles": sorted(authorizer.roles),
        "errors": list(error.messages) if error else [],
    }
