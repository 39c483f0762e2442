"""
Ateria - Prompts

Prompt builders for the Gemini-backed capabilities. Every prompt asks for
a single JSON object so the reply can be validated into pydantic models.
"""

from typing import Sequence

from ateria.core.state import MEAL_TYPE_LABELS, AIConversationContext, QuestionType

TIME_OF_DAY_LABELS = {
    "morning": "aamu",
    "afternoon": "iltapäivä",
    "evening": "ilta",
    "night": "yö",
}


def _pending_info(context: AIConversationContext) -> str:
    question = context.pending_question
    if question is None:
        return "Ei odottavaa kysymystä."

    params = question.template_params
    if question.type == QuestionType.DISAMBIGUATION and context.fineli_candidates:
        options = ", ".join(
            f"{i + 1}) {food.name_fi}" for i, food in enumerate(context.fineli_candidates)
        )
        return f"Odottaa vastausta: valitse oikea vaihtoehto: {options}"
    if question.type == QuestionType.PORTION:
        return f"Odottaa vastausta: kuinka paljon {params.get('foodName', 'ruokaa')}?"
    if question.type == QuestionType.COMPANION:
        return f"Odottaa vastausta: käytitkö {params.get('companion', 'lisuketta')}?"
    if question.type == QuestionType.NO_MATCH_RETRY:
        return f'Odottaa vastausta: "{params.get("rawText", "")}" ei löytynyt, pyydä tarkennusta.'
    return "Ei odottavaa kysymystä."


def build_parser_prompt(message: str, context: AIConversationContext) -> str:
    """Prompt for intent classification and food extraction."""
    meal_label = MEAL_TYPE_LABELS.get(context.meal_type, context.meal_type.value)
    time_label = TIME_OF_DAY_LABELS.get(context.time_of_day.value, context.time_of_day.value)
    resolved = ", ".join(context.resolved_item_names) or "ei vielä mitään"

    return f"""Olet suomalaisen ruokapäiväkirjan tekoälyavustaja. Tunnista käyttäjän viestin tarkoitus ja poimi siitä rakenteinen tieto.

KONTEKSTI:
- Ateria: {meal_label} ({time_label})
- Jo kirjatut ruuat: {resolved}
- {_pending_info(context)}

SÄÄNNÖT:
1. intent on yksi seuraavista:
   - add_items: käyttäjä kertoo mitä söi
   - answer: vastaus odottavaan kysymykseen (valinta, annoskoko, kyllä/ei)
   - correction: käyttäjä korjaa aiempaa tietoa
   - removal: käyttäjä haluaa poistaa ruuan
   - done: käyttäjä on valmis ("valmis", "siinä kaikki", "ei muuta")
   - unclear: viesti ei ole ymmärrettävä
2. Erota jokainen ruoka-aine omaksi itemiksi ("kahvia maidolla" = kahvi, maito).
3. Palauta ruuan nimi perusmuodossa (kaurapuuroa -> kaurapuuro, maidolla -> maito).
4. Anna searchHint kun tiedät paremman Fineli-hakutermin (maito -> "maito, kevyt", juusto -> "juusto, edam").
5. Anna portionEstimateGrams kun määrä on arkikielinen ("kuppi", "lautasellinen", "kaksi siivua").
   Tyypillisiä annoksia: kaurapuuro 300g, leipäviipale 35g, voi leivällä 5g, juustoviipale 20g,
   omena 180g, banaani 120g, jogurtti 200g, riisi tai pasta 200g, keitto 300g.
6. Vastaukset: numero = answerIndex (1-pohjainen), grammat = answerGrams,
   tilavuus = answerValue + answerUnit, pieni/normaali/iso = answerPortionSize,
   kyllä/ei = companionResponse.
7. confidence: 0.9+ varma, 0.7-0.9 melko varma, 0.5-0.7 arvaus, alle 0.5 -> intent = unclear.

Palauta VAIN JSON-objekti tässä muodossa:
```json
{{
    "intent": "add_items",
    "items": [
        {{"text": "kaurapuuro", "amount": null, "unit": null, "searchHint": "kaurapuuro", "portionEstimateGrams": 300}}
    ],
    "answerIndex": null,
    "answerGrams": null,
    "answerValue": null,
    "answerUnit": null,
    "answerPortionSize": null,
    "companionResponse": null,
    "correctionText": null,
    "correctionGrams": null,
    "removalTarget": null,
    "confidence": 0.9
}}
```

Käyttäjän viesti:
{message}"""


def build_ranking_prompt(query: str, candidate_names: Sequence[str]) -> str:
    """Prompt asking for a 1-5 relevance rating of each candidate (1-based)."""
    listing = "\n".join(f"{i + 1}. {name}" for i, name in enumerate(candidate_names))

    return f"""Käyttäjä etsii ruoka-ainetta: "{query}"

Fineli-tietokannasta löytyi nämä tulokset:
{listing}

Arvioi jokainen tulos: onko se sitä mitä käyttäjä etsii?
5 = juuri tätä käyttäjä etsii (esim. "maito" -> "Maito, kevyt")
4 = hyvin relevantti variantti (esim. "maito" -> "Maito, rasvaton")
3 = liittyy mutta eri ruoka (esim. "maito" -> "Maitojuoma")
2 = heikosti relevantti (esim. "maito" -> "Maitosuklaalevy")
1 = ei relevantti (esim. "maito" -> "Näkkileipä, sisältää maitoa")

Palauta VAIN JSON-objekti:
```json
{{"rankings": [{{"index": 1, "relevance": 5}}]}}
```"""


def build_responder_prompt(template_message: str, context: AIConversationContext) -> str:
    """Prompt for rephrasing a confirmation in natural language."""
    meal_label = MEAL_TYPE_LABELS.get(context.meal_type, context.meal_type.value)
    resolved = ", ".join(context.resolved_item_names) or "ei vielä"
    language = "suomeksi" if context.locale == "fi" else "englanniksi"

    return f"""Olet ruokapäiväkirjan avustaja. Tehtäväsi on ainoastaan kirjata mitä käyttäjä söi.

TYYLI:
- Lyhyet, asialliset vastaukset (1-2 lausetta) {language}
- Ystävällinen sävy, käytä ✓-merkkiä vahvistuksissa

SÄÄNNÖT:
- Älä ehdota tai suosittele ruokia
- Älä anna ravitsemusneuvoja äläkä mainitse kaloreita
- Säilytä kaikki ruokien nimet ja grammamäärät täsmälleen

KONTEKSTI:
- Ateria: {meal_label}
- Jo kirjatut: {resolved}

Muotoile tämä viesti luontevammin: "{template_message}"

Palauta VAIN JSON-objekti:
```json
{{"message": "...", "suggestions": []}}
```"""
