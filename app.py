# app.py
"""
Main application runner for the NFS-e Signing API
"""
from main import app
from api_endpoints import router

# Include the API router
app.include_router(router, prefix="/api", tags=["NFS-e Operations"])


def run():
    import uvicorn

    print("\n" + "="*60)
    print("Starting NFS-e Signing API Server")
    print("="*60)
    print("\nAPI will be available at: http://localhost:8000")
    print("API Documentation: http://localhost:8000/docs")
    print("\nAvailable Endpoints:")
    print("   POST /api/sign-batch     - Sign a YAML batch, return the XML")
    print("   POST /api/send-batch     - Sign and submit a YAML batch")
    print("   POST /api/consult-batch  - Query a batch by protocol number")
    print("   GET  /health             - Health check")
    print("   GET  /                   - API info")
    print("\n" + "="*60 + "\n")

    uvicorn.run(
        "app:app",
        host="0.0.0.0",
        port=8000,
        log_level="info"
    )


if __name__ == "__main__":
    run()
