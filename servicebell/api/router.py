from fastapi import APIRouter

from servicebell.api.endpoints import auth, feedback, requests, restaurants, tables, users

api_router = APIRouter()

api_router.include_router(auth.router, tags=["Autenticação"])
api_router.include_router(users.router, prefix="/users", tags=["Usuários"])
api_router.include_router(restaurants.router, prefix="/restaurants", tags=["Restaurantes"])
api_router.include_router(tables.router, prefix="/restaurants/{restaurant_id}/tables", tags=["Mesas"])
api_router.include_router(requests.router, prefix="/requests", tags=["Chamados"])
api_router.include_router(feedback.router, prefix="/feedback", tags=["Avaliações"])
