# server_api.py
"""
Evaluation service: the server side of the oblivious Fibonacci engine.

The server never sees a client key. A client opens a session by uploading
its public key and evaluation key; the server installs the evaluation key,
builds the constant tables once, and then answers any number of encrypted
queries against them.

Run with:
    uvicorn server_api:create_app --factory
"""
import logging
import pickle
import threading
import time
import uuid
from typing import Dict, Literal, Optional

from fastapi import FastAPI, File, Form, HTTPException, Response, UploadFile
from pydantic import BaseModel

from oblivious_fib.config import FibConfig, load_config
from oblivious_fib.custom_fhe import EncryptedValue, EvaluationKey, PublicKey, create_backend
from oblivious_fib.errors import CapabilityError
from oblivious_fib.evaluator import ObliviousEvaluator
from oblivious_fib.logging_utils import setup_logger
from oblivious_fib.recurrence import max_fibonacci_index
from oblivious_fib.tables import build_tables

logger = logging.getLogger("oblivious_fib.server")


class SessionInfo(BaseModel):
    session_id: str
    backend: str
    bound: int
    setup_ms: float


def _load(upload: UploadFile, expected_type, what: str):
    # Uploads are pickled objects: only serve trusted clients
    try:
        obj = pickle.load(upload.file)
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Unreadable {what}: {e}") from e
    if not isinstance(obj, expected_type):
        raise HTTPException(status_code=400, detail=f"Expected {what}, got {type(obj).__name__}")
    return obj


def create_app(config: Optional[FibConfig] = None) -> FastAPI:
    config = config or load_config()
    setup_logger(level=config.log_level)

    app = FastAPI(title="Oblivious Fibonacci Server")
    sessions: Dict[str, ObliviousEvaluator] = {}
    lock = threading.Lock()

    @app.get("/")
    def home():
        with lock:
            open_sessions = len(sessions)
        return {"status": "FHE Server Online", "backend": config.backend, "sessions": open_sessions}

    @app.post("/session", response_model=SessionInfo)
    def open_session(
            public_key_file: UploadFile = File(...),
            evaluation_key_file: UploadFile = File(...),
            bound: int = Form(config.bound),
    ):
        """
        Receives: Public Key + Evaluation Key
        Returns: Session id for subsequent queries
        """
        limit = max_fibonacci_index(config.width)
        if not 1 <= bound <= limit:
            raise HTTPException(status_code=422, detail=f"bound must be in 1-{limit}")

        public_key = _load(public_key_file, PublicKey, "public key")
        evaluation_key = _load(evaluation_key_file, EvaluationKey, "evaluation key")

        t_start = time.perf_counter()
        try:
            backend = create_backend(config.backend, width=config.width, seed=config.seed)
            ctx = backend.install_evaluation_key(evaluation_key, public_key)
            tables = build_tables(bound, public_key, backend, config.workers)
        except CapabilityError as e:
            logger.error(f"Session setup failed: {e}")
            raise HTTPException(status_code=500, detail=str(e)) from e
        setup_ms = (time.perf_counter() - t_start) * 1000

        session_id = uuid.uuid4().hex
        with lock:
            sessions[session_id] = ObliviousEvaluator(ctx, tables)
        logger.info(f"Session {session_id[:8]} open (bound={bound}, setup {setup_ms:.1f} ms)")
        return SessionInfo(session_id=session_id, backend=backend.name, bound=bound, setup_ms=setup_ms)

    @app.post("/evaluate/{session_id}")
    def evaluate(
            session_id: str,
            strategy: Literal["iterative", "lookup"] = "lookup",
            index_file: UploadFile = File(...),
    ):
        """
        Receives: Encrypted Index
        Returns: Pickled EncryptedResult (value + in-range flag)
        """
        with lock:
            evaluator = sessions.get(session_id)
        if evaluator is None:
            raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")

        encrypted_index = _load(index_file, EncryptedValue, "encrypted index")
        if encrypted_index.width != config.width:
            raise HTTPException(
                status_code=400,
                detail=f"Encrypted index is {encrypted_index.width} bits wide, server uses {config.width}",
            )

        t_start = time.perf_counter()
        try:
            result = evaluator.evaluate(encrypted_index, strategy)
        except CapabilityError as e:
            logger.error(f"Evaluation failed: {e}")
            raise HTTPException(status_code=500, detail=str(e)) from e
        logger.info(f"[{strategy}] query on {session_id[:8]} took {(time.perf_counter() - t_start) * 1000:.1f} ms")

        return Response(content=pickle.dumps(result), media_type="application/octet-stream")

    @app.delete("/session/{session_id}")
    def close_session(session_id: str):
        with lock:
            removed = sessions.pop(session_id, None)
        if removed is None:
            raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
        return {"closed": session_id}

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
