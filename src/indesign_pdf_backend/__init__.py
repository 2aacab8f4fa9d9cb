"""
InDesign PDF Backend - REST API that turns InDesign packages into PDFs

This package provides a FastAPI-based web service that drives a desktop
installation of Adobe InDesign. It enables:

- Uploading a zipped InDesign package (.indd or .idml plus links and fonts)
- Extracting the package and locating its document
- Generating an ExtendScript export script and running it inside InDesign
- Supervising the InDesign process with a timeout and forced termination
- Returning the verified PDF and cleaning up every temporary file

Key Components:
    - main: FastAPI application and HTTP endpoint definitions
    - conversion: Extraction, execution and verification for one request
    - process_runner: InDesign process lifecycle and outcome classification
    - script_generator: ExtendScript and AppleScript text generation
    - archive: Zip validation, extraction and document location
    - availability: InDesign installation lookup
    - configuration: Config loading and merging logic
    - diagnostics: Host health checks (CLI and endpoint)
    - utils: Filesystem and string utilities

Usage:
    Run the API server with:
        uvicorn indesign_pdf_backend.main:app --host 0.0.0.0 --port 5000

    Or use the console script:
        indesign-pdf-backend

    Check the host before serving:
        indesign-pdf-diagnostics
"""

__version__ = "1.0.0"
