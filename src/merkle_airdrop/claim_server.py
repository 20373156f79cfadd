import logging
from contextlib import asynccontextmanager
from typing import List, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .claim.airdrop import Airdrop
from .db_class.mysql_connector import MySQLConnector
from .db_class.repositories.claim_bitmap_repository import ClaimBitmapRepository
from .errors import ClaimError, ClaimErrorKind

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ClaimErrorKind.INVALID_PROOF: 422,
    ClaimErrorKind.NOT_READY_YET: 425,
    ClaimErrorKind.EXPIRED: 410,
    ClaimErrorKind.ALREADY_CLAIMED: 409,
    ClaimErrorKind.TRANSFER_FAILED: 502,
}


class ClaimRequest(BaseModel):
    caller: str
    credential: str
    amount: int
    allocation_id: int
    begin_time: int
    end_time: int
    proof: List[str]


class ClaimServer:
    """
    HTTP surface of one Airdrop instance.
    Claim errors come back as {"error": <kind>, "detail": <message>}.
    """

    def __init__(self,
                 airdrop: Airdrop,
                 cors_origins: str = "",
                 cors_methods: str = "GET,POST",
                 cors_headers: str = "*",
                 cors_credentials: bool = False,
                 db_connector: Optional[MySQLConnector] = None,
                 bitmap_repository: Optional[ClaimBitmapRepository] = None):
        self._airdrop = airdrop
        self._db_connector = db_connector
        self._bitmap_repository = bitmap_repository
        self._app = FastAPI(title="Merkle Airdrop", lifespan=self._lifespan)

        origins = self.parse_list_env(cors_origins)
        if origins:
            self._app.add_middleware(
                CORSMiddleware,
                allow_origins=origins,
                allow_credentials=cors_credentials,
                allow_methods=self.parse_list_env(cors_methods),
                allow_headers=self.parse_list_env(cors_headers),
            )

        self._app.add_exception_handler(ClaimError, self._claim_error_handler)
        self._app.add_exception_handler(ValueError, self._value_error_handler)
        self._register_routes()

    @property
    def app(self) -> FastAPI:
        return self._app

    @staticmethod
    def parse_list_env(value_str):
        return [item.strip() for item in value_str.split(',') if item.strip()]

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        if self._bitmap_repository is not None:
            async with self._bitmap_repository.connection() as conn:
                await self._bitmap_repository.ensure_schema(conn)
            logger.info("Claim bitmap schema ready.")
        try:
            yield
        finally:
            if self._db_connector is not None:
                await self._db_connector.close_pool()

    @staticmethod
    async def _claim_error_handler(request: Request, exc: ClaimError) -> JSONResponse:
        return JSONResponse(
            status_code=ERROR_STATUS.get(exc.kind, 400),
            content={"error": exc.kind.value, "detail": str(exc)},
        )

    @staticmethod
    async def _value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        logger.warning(f"Malformed claim input on {request.url.path}: {exc}")
        return JSONResponse(status_code=422, content={"error": "MalformedInput", "detail": str(exc)})

    def _register_routes(self):
        app = self._app
        airdrop = self._airdrop

        @app.get("/token")
        async def token():
            return {"token": airdrop.token}

        @app.get("/root")
        async def root():
            return {"root": "0x" + airdrop.root.hex()}

        @app.get("/claims/{allocation_id}")
        async def is_claimed(allocation_id: int):
            return {"allocation_id": allocation_id, "claimed": await airdrop.is_claimed(allocation_id)}

        @app.post("/claims/check")
        async def check_claim(req: ClaimRequest):
            claim = await airdrop.check_valid_claim(
                req.caller, req.credential, req.amount, req.allocation_id,
                req.begin_time, req.end_time, req.proof,
            )
            return {
                "valid": True,
                "signer": "0x" + claim.signer.hex(),
                "beneficiary": claim.beneficiary,
                "amount": str(claim.amount),
            }

        @app.post("/claims")
        async def claim_tokens(req: ClaimRequest):
            receipt = await airdrop.claim_tokens(
                req.caller, req.credential, req.amount, req.allocation_id,
                req.begin_time, req.end_time, req.proof,
            )
            return {
                "claimed": True,
                "allocation_id": req.allocation_id,
                "beneficiary": receipt.beneficiary,
                "amount": str(receipt.amount),
            }

    def run(self, host: str, port: int):
        uvicorn.run(self._app, host=host, port=port)
